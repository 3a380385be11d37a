"""Execution control commands (step/next/out/continue/move/assign)."""

from __future__ import annotations

import argparse
from typing import List, Optional

from .base import Command
from ..context import DebuggerContext
from ..output import emit_error, emit_program_output, emit_result, render_state, state_summary
from ..parser import parse_int
from ... import bfx_constants as const
from ...bfxdbg.protocol import ClientCommand, DebugStateMessage, ExitMessage
from ...bfxdbg.transport import TransportError


def _send(ctx: DebuggerContext, command: ClientCommand) -> int:
    try:
        stop = ctx.send(command)
    except TransportError as exc:
        emit_error(ctx, message=f"{command.operation} failed: {exc}")
        return 2
    emit_program_output(ctx, ctx.take_output())
    if isinstance(stop, DebugStateMessage):
        emit_result(ctx, message=render_state(stop), data=state_summary(stop))
        return 0
    if isinstance(stop, ExitMessage):
        emit_result(ctx, message=f"program exited with code {stop.code}", data={"exit": stop.code})
        return 0
    emit_error(ctx, message="interpreter disconnected")
    return 1


class _SimpleControl(Command):
    operation = ""

    def run(self, ctx: DebuggerContext, argv: List[str]) -> int:
        if argv:
            emit_error(ctx, message=f"{self.name} takes no arguments")
            return 1
        return _send(ctx, ClientCommand(operation=self.operation))


class StepCommand(_SimpleControl):
    operation = const.OP_STEP

    def __init__(self) -> None:
        super().__init__("step", "Execute the current statement and pause at the next", aliases=("s",))


class NextCommand(_SimpleControl):
    operation = const.OP_STEP_OVER

    def __init__(self) -> None:
        super().__init__("next", "Step over the next sibling statement", aliases=("n",))


class OutCommand(_SimpleControl):
    operation = const.OP_STEP_OUT

    def __init__(self) -> None:
        super().__init__("out", "Abandon the current loop and pause after it", aliases=("finish",))


class ContinueCommand(_SimpleControl):
    operation = const.OP_RESUME

    def __init__(self) -> None:
        super().__init__("continue", "Resume until the next marked statement", aliases=("c", "cont", "resume"))


def _cell_parser(prog: str, *, with_value: bool) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog=prog, add_help=False)
    parser.add_argument("cell", type=parse_int, help="Tape cell index")
    if with_value:
        parser.add_argument("value", type=parse_int, help="Byte value (0-255)")
    return parser


def _check_cell(cell: int) -> Optional[str]:
    if not 0 <= cell < const.TAPE_SIZE:
        return f"cell {cell} outside tape (0..{const.TAPE_SIZE - 1})"
    return None


class MoveCommand(Command):
    def __init__(self) -> None:
        super().__init__("move", "Move the cursor to CELL and step", aliases=("mv",), usage="CELL")
        self._parser = _cell_parser("move", with_value=False)

    def run(self, ctx: DebuggerContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        problem = _check_cell(args.cell)
        if problem:
            emit_error(ctx, message=problem)
            return 1
        return _send(ctx, ClientCommand(operation=const.OP_MOVE, cell=args.cell))


class AssignCommand(Command):
    def __init__(self) -> None:
        super().__init__("assign", "Store VALUE into CELL and stay paused", aliases=("set",), usage="CELL VALUE")
        self._parser = _cell_parser("assign", with_value=True)

    def run(self, ctx: DebuggerContext, argv: List[str]) -> int:
        try:
            args = self._parser.parse_args(argv)
        except SystemExit:
            return 1
        problem = _check_cell(args.cell)
        if problem is None and not 0 <= args.value <= const.CELL_MASK:
            problem = f"value {args.value} outside 0..{const.CELL_MASK}"
        if problem:
            emit_error(ctx, message=problem)
            return 1
        return _send(ctx, ClientCommand(operation=const.OP_ASSIGN, cell=args.cell, value=args.value))
