"""Program error kinds raised by the parser and the execution engine."""

from __future__ import annotations

import os
from typing import Optional, Union

from .statements import Position

KIND_UNCAUGHT = "uncaught"
KIND_SYNTAX = "syntax"
KIND_STACK_OVERFLOW = "stack-overflow"
KIND_STACK_UNDERFLOW = "stack-underflow"

_HEADERS = {
    KIND_UNCAUGHT: "Program threw an error:",
    KIND_SYNTAX: "There is a syntax error:",
    KIND_STACK_OVERFLOW: "Stack error:",
    KIND_STACK_UNDERFLOW: "Stack error:",
}


class ProgramError(RuntimeError):
    """Base class for every error that aborts a run.

    Carries the source position of the statement that failed together with
    the program path so the top-level run can render a located report.
    """

    kind = KIND_UNCAUGHT

    def __init__(self, reason: Union[str, BaseException], position: Optional[Position] = None, file_path: str = "") -> None:
        self.reason = reason
        self.position = position or Position()
        self.file_path = file_path
        super().__init__(str(reason))

    @property
    def file_name(self) -> str:
        return os.path.basename(self.file_path)

    def format(self) -> str:
        line, column = self.position.line, self.position.column
        return (
            f"{_HEADERS[self.kind]}\n"
            f"\t'{self.reason}' at line {line} column {column} in {self.file_name}\n"
            f"\t{self.file_path} {line}:{column}\n"
        )


class ProgramSyntaxError(ProgramError):
    kind = KIND_SYNTAX


class StackOverflowError(ProgramError):
    """Cursor moved right past the last tape cell."""

    kind = KIND_STACK_OVERFLOW


class StackUnderflowError(ProgramError):
    """Cursor moved left past the first tape cell."""

    kind = KIND_STACK_UNDERFLOW


class UncaughtError(ProgramError):
    """Wraps an I/O failure (file, network, debug transport)."""

    kind = KIND_UNCAUGHT
