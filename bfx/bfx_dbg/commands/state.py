"""Show the last paused snapshot."""

from __future__ import annotations

from typing import List

from .base import Command
from ..context import DebuggerContext
from ..output import emit_error, emit_program_output, emit_result, render_state, state_summary
from ...bfxdbg.transport import TransportError


class StateCommand(Command):
    def __init__(self) -> None:
        super().__init__("state", "Show where the program is paused", aliases=("where", "info"))

    def run(self, ctx: DebuggerContext, argv: List[str]) -> int:
        try:
            ctx.ensure_transport()
        except TransportError as exc:
            emit_error(ctx, message=str(exc))
            return 2
        emit_program_output(ctx, ctx.take_output())
        if ctx.finished:
            emit_result(ctx, message=f"program exited with code {ctx.exit_code}", data={"exit": ctx.exit_code})
            return 0
        state = ctx.last_state
        if state is None:
            emit_result(ctx, message="program is running", data={"state": "running"})
            return 0
        data = state_summary(state)
        data["tape"] = list(state.tape)
        emit_result(ctx, message=render_state(state), data=data)
        return 0
