"""Top-level run: load, parse and execute one program file."""

from __future__ import annotations

import io
import logging
import os
import sys
from dataclasses import dataclass, field
from typing import IO, Any, Optional

from . import bfx_constants as const
from .bfxdbg.session import DebugSession, SessionStream
from .engine import Engine
from .errors import ProgramError
from .io_targets import Endpoint, IOSourceConfig, binary_stream
from .parser import Parser

LOGGER = logging.getLogger("bfx.runtime")

DEBUG_NONE = "none"
DEBUG_STDIO = "stdio"
DEBUG_TCP = "tcp"


@dataclass
class RunOptions:
    path: str
    io_sources: IOSourceConfig = field(default_factory=IOSourceConfig)
    debug: str = DEBUG_NONE
    debug_host: str = const.DEFAULT_DEBUG_HOST
    debug_port: int = 0
    stdout: Optional[IO[Any]] = None
    stderr: Optional[IO[Any]] = None
    stdin: Optional[IO[Any]] = None


def _open_debugger(options: RunOptions, stdout: IO[Any], stderr: IO[Any], stdin: IO[Any]) -> Optional[DebugSession]:
    if options.debug == DEBUG_STDIO:
        return DebugSession(binary_stream(stdin), binary_stream(stdout), mirrors_console=True)
    if options.debug == DEBUG_TCP:
        announce = stderr if isinstance(stderr, io.TextIOBase) else sys.stderr
        return DebugSession.listen(options.debug_host, options.debug_port, announce=announce)
    return None


def _default_endpoint(options: RunOptions, session: Optional[DebugSession], stdout: IO[Any], stderr: IO[Any], stdin: IO[Any]) -> Endpoint:
    if session is not None and options.debug == DEBUG_STDIO:
        # stdout/stdin carry the protocol; program I/O is wrapped or empty
        return Endpoint(
            const.TARGET_STD,
            SessionStream(session, const.MSG_STD_OUT),
            SessionStream(session, const.MSG_STD_ERR),
            io.BytesIO(),
        )
    return Endpoint(const.TARGET_STD, stdout, stderr, stdin)


def run_file(options: RunOptions) -> int:
    """Run the program at ``options.path`` and return the process exit code."""
    stdout = options.stdout if options.stdout is not None else sys.stdout
    stderr = options.stderr if options.stderr is not None else sys.stderr
    stdin = options.stdin if options.stdin is not None else sys.stdin
    path = options.path
    name = os.path.basename(path)

    try:
        with open(path, "r", encoding="utf-8") as handle:
            content = handle.read()
    except OSError as exc:
        Endpoint(const.TARGET_STD, stdout, stderr, stdin).write_error(f"{exc}\n")
        return const.EXIT_FAILURE

    try:
        session = _open_debugger(options, stdout, stderr, stdin)
    except OSError as exc:
        Endpoint(const.TARGET_STD, stdout, stderr, stdin).write_error(f"debugger: {exc}\n")
        return const.EXIT_FAILURE
    default = _default_endpoint(options, session, stdout, stderr, stdin)
    code = const.EXIT_FAILURE
    try:
        if session is not None:
            session.open(name, path, content)
        try:
            program = Parser(path).parse(content)
        except ProgramError as exc:
            text = exc.format()
            default.write_error(text)
            if session is not None:
                session.report_error(text)
            return code
        engine = Engine(program, file_path=path, config=options.io_sources, default=default, debugger=session)
        code = engine.run()
        LOGGER.debug("%s finished with exit code %d", name, code)
        return code
    finally:
        if session is not None:
            session.close(code)
