"""Execution engine: walks the statement tree against the tape and I/O registry."""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass, field
from typing import Callable, Dict, Optional, Set, Tuple, Type, cast

from . import bfx_constants as const
from .bfxdbg.protocol import DebugProtocolError, DebugStateMessage
from .bfxdbg.session import DebugSession
from .errors import ProgramError, StackOverflowError, StackUnderflowError, UncaughtError
from .io_targets import Endpoint, IOSourceConfig, IOTargetRegistry
from .statements import (
    Block,
    Clear,
    Decrement,
    Increment,
    Input,
    Loop,
    MoveLeft,
    MoveRight,
    Output,
    Push,
    Statement,
    SwitchIOTarget,
    walk,
)
from .tape import Tape
from .waiters import EngineWaiters

LOGGER = logging.getLogger("bfx.engine")


class _SteppedOut(Exception):
    """Unwinds the current block after a step-out command."""


@dataclass
class BreakpointTable:
    """Execution-only breakpoint state keyed by statement identity.

    ``marked`` holds statements armed in the source (``debug``) and stays
    armed for the whole run. ``transient`` holds one-shot arms placed by step
    commands; pausing on one consumes it.
    """

    marked: Set[Statement] = field(default_factory=set)
    transient: Set[Statement] = field(default_factory=set)

    @classmethod
    def from_program(cls, program: Block) -> "BreakpointTable":
        return cls(marked={statement for statement in walk(program) if statement.marked})

    def is_armed(self, statement: Statement) -> bool:
        return statement in self.transient or statement in self.marked

    def arm(self, statement: Statement) -> None:
        self.transient.add(statement)

    def consume(self, statement: Statement) -> None:
        self.transient.discard(statement)

    def clear_transient(self) -> None:
        self.transient.clear()


class Engine:
    """Interprets one program.

    ``execute`` raises :class:`~bfx.errors.ProgramError`; ``run`` turns the
    outcome into an exit code, reports failures and releases every endpoint.
    """

    def __init__(
        self,
        program: Block,
        *,
        file_path: str = "",
        config: Optional[IOSourceConfig] = None,
        default: Optional[Endpoint] = None,
        debugger: Optional[DebugSession] = None,
        waiters: Optional[EngineWaiters] = None,
    ) -> None:
        self.program = program
        self.file_path = file_path
        self.tape = Tape()
        self.waiters = waiters or EngineWaiters()
        if default is None:
            default = Endpoint(const.TARGET_STD, sys.stdout, sys.stderr, sys.stdin)
        self.io = IOTargetRegistry(default, config or IOSourceConfig(), self.waiters)
        self.debugger = debugger
        self.breakpoints = BreakpointTable.from_program(program)
        # pause the Nth statement dispatched from now on (0 = off)
        self._countdown = 0
        # (depth, n): start a countdown of n once the block at depth ends
        self._carry: Optional[Tuple[int, int]] = None
        self._handlers: Dict[Type[Statement], Callable[[Statement, int], None]] = {
            Increment: self._increment,
            Decrement: self._decrement,
            MoveRight: self._move_right,
            MoveLeft: self._move_left,
            Clear: self._clear,
            Push: self._push,
            Output: self._output,
            Input: self._input,
            Loop: self._loop,
            SwitchIOTarget: self._switch,
        }

    # ------------------------------------------------------------------
    # Top level

    def run(self) -> int:
        try:
            self.execute(self.program)
        except _SteppedOut:
            LOGGER.debug("stepped out of the top-level block; run ends")
        except ProgramError as exc:
            self.report(exc)
            return const.EXIT_FAILURE
        finally:
            self.shutdown()
        return const.EXIT_OK

    def report(self, error: ProgramError) -> None:
        text = error.format()
        LOGGER.debug("run failed: %s", error)
        try:
            self.io.write_error(text)
        except OSError as exc:
            LOGGER.warning("could not write error report: %s", exc)
        if self.debugger is not None and self.debugger.attached:
            self.debugger.report_error(text)

    def shutdown(self) -> None:
        self.io.close()

    def execute(self, block: Block, depth: int = 0) -> None:
        for index, statement in enumerate(block):
            if self._should_pause(statement, depth):
                self._pause(block, index, depth)
            self._dispatch(statement, depth)
        carry = self._carry
        if carry is not None and carry[0] == depth:
            self._carry = None
            self._countdown = carry[1]

    def _dispatch(self, statement: Statement, depth: int) -> None:
        try:
            handler = self._handlers[type(statement)]
        except KeyError:
            raise TypeError(f"unsupported statement {statement.name}") from None
        handler(statement, depth)

    # ------------------------------------------------------------------
    # Statements

    def _increment(self, statement: Statement, depth: int) -> None:
        self.tape.increment()

    def _decrement(self, statement: Statement, depth: int) -> None:
        self.tape.decrement()

    def _move_right(self, statement: Statement, depth: int) -> None:
        if not self.tape.move_right():
            raise StackOverflowError("stack overflow", statement.position, self.file_path)

    def _move_left(self, statement: Statement, depth: int) -> None:
        if not self.tape.move_left():
            raise StackUnderflowError("stack underflow", statement.position, self.file_path)

    def _clear(self, statement: Statement, depth: int) -> None:
        self.tape.clear()

    def _push(self, statement: Statement, depth: int) -> None:
        self.tape.current = cast(Push, statement).value

    def _loop(self, statement: Statement, depth: int) -> None:
        body = cast(Loop, statement).body
        try:
            while self.tape.current != 0:
                self.execute(body, depth + 1)
        except _SteppedOut:
            # leave the loop now and pause on whatever runs next
            self._countdown = 1

    def _output(self, statement: Statement, depth: int) -> None:
        value = self.tape.current
        try:
            if self.io.kind == const.TARGET_HTTP:
                self.io.await_connection()
                if value == 0:
                    self.io.finish_response_cycle()
                    return
            self.io.broadcast(value)
        except OSError as exc:
            raise UncaughtError(exc, statement.position, self.file_path) from exc

    def _input(self, statement: Statement, depth: int) -> None:
        try:
            self.tape.current = self.io.read()
        except OSError as exc:
            raise UncaughtError(exc, statement.position, self.file_path) from exc

    def _switch(self, statement: Statement, depth: int) -> None:
        try:
            self.io.switch(cast(SwitchIOTarget, statement).target)
        except (OSError, ValueError) as exc:
            raise UncaughtError(exc, statement.position, self.file_path) from exc

    # ------------------------------------------------------------------
    # Debugger control

    def _should_pause(self, statement: Statement, depth: int) -> bool:
        debugger = self.debugger
        if debugger is None or not debugger.attached:
            return False
        if self._countdown:
            self._countdown -= 1
            if self._countdown == 0:
                return True
        return self.breakpoints.is_armed(statement)

    def debug_state(self, statement: Statement) -> DebugStateMessage:
        return DebugStateMessage(
            statement=statement.to_dict(),
            position=statement.position.to_dict(),
            cursor=self.tape.cursor,
            tape=self.tape.window(),
        )

    def _pause(self, block: Block, index: int, depth: int) -> None:
        debugger = cast(DebugSession, self.debugger)
        statement = block[index]
        self.breakpoints.consume(statement)
        self._countdown = 0
        self._carry = None
        LOGGER.debug("paused at %s %d:%d", statement.name, statement.position.line, statement.position.column)
        try:
            debugger.send_state(self.debug_state(statement))
            while True:
                command = debugger.read_command()
                if command is None:
                    self._resume()
                    return
                operation = command.operation
                if operation not in const.CLIENT_OPERATIONS:
                    LOGGER.debug("ignoring debugger operation %r", operation)
                    continue
                if operation == const.OP_STEP:
                    self._arm_ahead(block, index, 1, depth)
                elif operation == const.OP_STEP_OVER:
                    self._arm_ahead(block, index, 2, depth)
                elif operation == const.OP_MOVE:
                    if command.cell is None or not self.tape.in_range(command.cell):
                        LOGGER.warning("move to invalid cell %r ignored", command.cell)
                        continue
                    self.tape.seek(command.cell)
                    self._arm_ahead(block, index, 1, depth)
                elif operation == const.OP_RESUME:
                    self._resume()
                elif operation == const.OP_STEP_OUT:
                    self._resume()
                    debugger.resume()
                    raise _SteppedOut()
                elif operation == const.OP_ASSIGN:
                    if command.cell is None or command.value is None or not self.tape.in_range(command.cell):
                        LOGGER.warning("assign to invalid cell %r ignored", command.cell)
                        continue
                    self.tape.store(command.cell, command.value)
                    debugger.send_state(self.debug_state(statement))
                    continue
                debugger.resume()
                return
        except (DebugProtocolError, OSError) as exc:
            raise UncaughtError(exc, statement.position, self.file_path) from exc

    def _arm_ahead(self, block: Block, index: int, distance: int, depth: int) -> None:
        target = index + distance
        if target < len(block):
            self.breakpoints.arm(block[target])
        else:
            self._carry = (depth, target - len(block) + 1)

    def _resume(self) -> None:
        self.breakpoints.clear_transient()
        self._countdown = 0
        self._carry = None

