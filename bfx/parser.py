"""Recursive-descent parser turning tokens into the statement tree."""

from __future__ import annotations

from typing import List, Optional, Tuple

from . import bfx_constants as const
from . import lexer
from .errors import ProgramSyntaxError
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
    Position,
    Push,
    Statement,
    SwitchIOTarget,
)

_SIMPLE = {
    lexer.TOK_PLUS: Increment,
    lexer.TOK_MINUS: Decrement,
    lexer.TOK_MOVE_RIGHT: MoveRight,
    lexer.TOK_MOVE_LEFT: MoveLeft,
    lexer.TOK_DOT: Output,
    lexer.TOK_COMMA: Input,
    lexer.TOK_STAR: Clear,
}


class Parser:
    def __init__(self, file_path: str = "") -> None:
        self.file_path = file_path
        self.program: Block = ()
        self._tokens: List[lexer.Token] = []
        self._index = 0

    def parse(self, source: str) -> Block:
        self._tokens = lexer.tokenize(source)
        self._index = 0
        statements, closer = self._parse_block()
        if closer is not None:
            raise self._error("unexpected loop close", closer.position)
        self.program = statements
        return statements

    def _error(self, reason: str, position: Position) -> ProgramSyntaxError:
        return ProgramSyntaxError(reason, position, self.file_path)

    def _next(self) -> Optional[lexer.Token]:
        if self._index >= len(self._tokens):
            return None
        token = self._tokens[self._index]
        self._index += 1
        return token

    def _parse_block(self) -> Tuple[Block, Optional[lexer.Token]]:
        """Parse statements until a loop close token or end of input.

        Returns the statements and the closing token (``None`` at end of input).
        """
        statements: List[Statement] = []
        pending_debug: Optional[lexer.Token] = None
        while True:
            token = self._next()
            if token is None or token.type == lexer.TOK_LOOP_CLOSE:
                if pending_debug is not None:
                    raise self._error("debug marker must precede a statement", pending_debug.position)
                return tuple(statements), token
            if token.type == lexer.TOK_DEBUG:
                pending_debug = token
                continue
            marked = pending_debug is not None
            pending_debug = None
            statements.append(self._parse_statement(token, marked))

    def _parse_statement(self, token: lexer.Token, marked: bool) -> Statement:
        simple = _SIMPLE.get(token.type)
        if simple is not None:
            return simple(position=token.position, marked=marked)
        if token.type == lexer.TOK_BAR:
            number = self._next()
            if number is None:
                raise self._error("unexpected end of file, expected number", token.position)
            if number.type != lexer.TOK_NUMBER:
                raise self._error(f"unexpected {number.type} token, expected number", token.position)
            return Push(position=token.position, marked=marked, value=int(number.value) & const.CELL_MASK)
        if token.type == lexer.TOK_LOOP_OPEN:
            body, closer = self._parse_block()
            if closer is None:
                raise self._error("unexpected end of file, loop is unclosed", token.position)
            return Loop(position=token.position, marked=marked, body=body)
        if token.type == lexer.TOK_IO:
            target = self._next()
            if target is None or target.type != lexer.TOK_WORD:
                raise self._error("expected io target after 'io'", token.position)
            if target.value not in const.IO_TARGETS:
                raise self._error(f"unknown io target '{target.value}'", target.position)
            return SwitchIOTarget(position=token.position, marked=marked, target=target.value)
        raise self._error(f"unexpected {token.type} token", token.position)


def parse(source: str, file_path: str = "") -> Block:
    """Parse *source* into an immutable statement tree."""
    return Parser(file_path).parse(source)
