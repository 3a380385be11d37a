"""Tokenizer for bfx source text."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List

from .statements import Position

TOK_PLUS = "plus"
TOK_MINUS = "minus"
TOK_DOT = "dot"
TOK_COMMA = "comma"
TOK_MOVE_RIGHT = "move_right"
TOK_MOVE_LEFT = "move_left"
TOK_LOOP_OPEN = "loop_open"
TOK_LOOP_CLOSE = "loop_close"
TOK_STAR = "star"
TOK_BAR = "bar"
TOK_NUMBER = "number"
TOK_DEBUG = "debug"
TOK_IO = "io"
TOK_WORD = "word"

_SINGLE_CHAR = {
    "+": TOK_PLUS,
    "-": TOK_MINUS,
    ".": TOK_DOT,
    ",": TOK_COMMA,
    ">": TOK_MOVE_RIGHT,
    "<": TOK_MOVE_LEFT,
    "[": TOK_LOOP_OPEN,
    "]": TOK_LOOP_CLOSE,
    "*": TOK_STAR,
}

_KEYWORDS = {"debug": TOK_DEBUG, "io": TOK_IO}


@dataclass(frozen=True)
class Token:
    type: str
    value: str
    position: Position


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def tokenize(source: str) -> List[Token]:
    """Split *source* into tokens.

    Keywords are only recognised at word boundaries and the word following an
    ``io`` keyword is kept as a ``word`` token so the parser can validate it.
    Everything else that is not an instruction character is a comment.
    """
    tokens: List[Token] = []
    line, column = 1, 1
    index = 0
    expect_target = False
    length = len(source)
    while index < length:
        char = source[index]
        here = Position(line, column)
        if char == "\n":
            line += 1
            column = 1
            index += 1
            continue
        kind = _SINGLE_CHAR.get(char)
        if kind is not None:
            tokens.append(Token(kind, char, here))
            expect_target = False
            index += 1
            column += 1
            continue
        if char == "|":
            tokens.append(Token(TOK_BAR, char, here))
            index += 1
            column += 1
            start = index
            while index < length and source[index].isdigit():
                index += 1
            if index > start:
                tokens.append(Token(TOK_NUMBER, source[start:index], Position(line, column)))
                column += index - start
            continue
        if _is_word_char(char) and (index == 0 or not _is_word_char(source[index - 1])):
            start = index
            while index < length and _is_word_char(source[index]):
                index += 1
            word = source[start:index]
            keyword = _KEYWORDS.get(word)
            if expect_target:
                tokens.append(Token(TOK_WORD, word, here))
                expect_target = False
            elif keyword is not None:
                tokens.append(Token(keyword, word, here))
                expect_target = keyword == TOK_IO
            column += index - start
            continue
        if expect_target and not char.isspace():
            expect_target = False
        index += 1
        column += 1
    return tokens
