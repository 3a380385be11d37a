"""Leave the debugger."""

from __future__ import annotations

from typing import List

from .base import Command
from ..context import DebuggerContext
from ..output import emit_result


class ExitCommand(Command):
    def __init__(self) -> None:
        super().__init__("exit", "Detach and leave; a paused program continues unattended", aliases=("quit", "q"))

    def run(self, ctx: DebuggerContext, argv: List[str]) -> int:
        if ctx.connected and not ctx.finished:
            # the interpreter treats a closed connection as a detach
            emit_result(ctx, message="detaching; program keeps running", data={"detached": True})
        ctx.disconnect()
        raise SystemExit(0)
