"""bfx command line entry point."""

from __future__ import annotations

import argparse
import logging
import os
import sys
from typing import List, Optional

from . import bfx_constants as const
from .io_targets import IOSourceConfig
from .runtime import DEBUG_NONE, DEBUG_STDIO, DEBUG_TCP, RunOptions, run_file

LOG = logging.getLogger("bfx.cli")


def _configure_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )


def build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="bfx", description="Extended brainfuck interpreter")
    parser.add_argument("--log-level", default=os.environ.get("BFX_LOG", "WARNING"), help="Logging level (default WARNING)")
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Run a program file")
    run.add_argument("path", help="Program source file")
    run.add_argument("--debug", action="store_true", help="Attach a debugger over stdin/stdout (JSON lines)")
    run.add_argument("--debug-port", type=int, help="Attach a debugger over TCP on this port (0 picks one)")
    run.add_argument("--debug-host", default=const.DEFAULT_DEBUG_HOST, help="Interface for --debug-port")
    run.add_argument(
        "--file",
        default=const.DEFAULT_FILE_PATH,
        help=f"I/O source for the file target (default '{const.DEFAULT_FILE_PATH}')",
    )
    run.add_argument(
        "--http",
        default=const.DEFAULT_HTTP_ADDRESS,
        help=f"Bind address for the http target (default '{const.DEFAULT_HTTP_ADDRESS}')",
    )
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    parser = build_arg_parser()
    args = parser.parse_args(argv)
    _configure_logging(args.log_level)

    if args.debug and args.debug_port is not None:
        parser.error("--debug and --debug-port are mutually exclusive")
    if args.debug_port is not None:
        debug_mode = DEBUG_TCP
    elif args.debug:
        debug_mode = DEBUG_STDIO
    else:
        debug_mode = DEBUG_NONE

    options = RunOptions(
        path=args.path,
        io_sources=IOSourceConfig(file_path=args.file, http_address=args.http),
        debug=debug_mode,
        debug_host=args.debug_host,
        debug_port=args.debug_port or 0,
    )
    try:
        return run_file(options)
    except KeyboardInterrupt:
        LOG.info("interrupted")
        return const.EXIT_FAILURE


if __name__ == "__main__":  # pragma: no cover
    sys.exit(main())
