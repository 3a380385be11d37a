"""bfx-dbg CLI entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

from .. import bfx_constants as const
from .commands import CommandRegistry, build_registry
from .context import DebuggerContext
from .parser import PARSE_ERROR, split_command
from .repl import DebuggerREPL

LOG = logging.getLogger("bfx.bfx_dbg.cli")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bfx-dbg", description="bfx debugger client")
    parser.add_argument("--host", default=const.DEFAULT_DEBUG_HOST, help="Interpreter host")
    parser.add_argument("--port", type=int, required=True, help="Port announced by 'bfx run --debug-port'")
    parser.add_argument("--json", action="store_true", help="Emit JSON output")
    parser.add_argument("--timeout", type=float, help="Seconds to wait for the interpreter to stop (default: forever)")
    parser.add_argument("--log-level", default=os.environ.get("BFX_DBG_LOG", "WARNING"), help="Logging level (default WARNING)")
    parser.add_argument(
        "-c",
        "--command",
        help="Execute a single command non-interactively (quote the command string)",
    )
    parser.add_argument(
        "--history",
        type=Path,
        default=Path.home() / ".bfx-dbg-history",
        help="Path to command history file",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)
    ctx = DebuggerContext(host=args.host, port=args.port, json_output=args.json, timeout=args.timeout)
    registry = build_registry()
    if args.command:
        try:
            return _run_single_command(ctx, registry, args.command)
        finally:
            ctx.disconnect()
    repl = DebuggerREPL(ctx, registry, history_path=str(args.history))
    try:
        return repl.run()
    except KeyboardInterrupt:
        print()
        return 0
    finally:
        ctx.disconnect()


def _run_single_command(ctx: DebuggerContext, registry: CommandRegistry, command_line: str) -> int:
    argv = split_command(command_line)
    if not argv:
        return 0
    cmd_name, *cmd_args = argv
    if cmd_name == PARSE_ERROR:
        print(f"Parse error: {' '.join(cmd_args)}")
        return 1
    command = registry.get(cmd_name)
    if not command:
        print(f"Unknown command: {cmd_name}")
        return 1
    try:
        return command.run(ctx, cmd_args)
    except SystemExit as exc:
        return int(exc.code or 0)


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
