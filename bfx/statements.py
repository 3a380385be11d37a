"""Statement tree produced by the parser and walked by the engine.

Statements are frozen dataclasses compared by identity, so a statement can key
the engine's breakpoint side table without the tree itself ever changing.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Tuple


@dataclass(frozen=True)
class Position:
    line: int = 0
    column: int = 0

    def to_dict(self) -> Dict[str, int]:
        return {"line": self.line, "column": self.column}


@dataclass(frozen=True, eq=False)
class Statement:
    position: Position = field(default_factory=Position)
    marked: bool = False

    @property
    def name(self) -> str:
        return type(self).__name__

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.name, "position": self.position.to_dict(), "marked": self.marked}


@dataclass(frozen=True, eq=False)
class Increment(Statement):
    pass


@dataclass(frozen=True, eq=False)
class Decrement(Statement):
    pass


@dataclass(frozen=True, eq=False)
class MoveRight(Statement):
    pass


@dataclass(frozen=True, eq=False)
class MoveLeft(Statement):
    pass


@dataclass(frozen=True, eq=False)
class Clear(Statement):
    pass


@dataclass(frozen=True, eq=False)
class Output(Statement):
    pass


@dataclass(frozen=True, eq=False)
class Input(Statement):
    pass


@dataclass(frozen=True, eq=False)
class Push(Statement):
    value: int = 0

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["value"] = self.value
        return payload


@dataclass(frozen=True, eq=False)
class Loop(Statement):
    body: Tuple[Statement, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["body"] = len(self.body)
        return payload


@dataclass(frozen=True, eq=False)
class SwitchIOTarget(Statement):
    target: str = ""

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["target"] = self.target
        return payload


Block = Tuple[Statement, ...]


def walk(block: Block):
    """Yield every statement in *block* depth-first."""
    for statement in block:
        yield statement
        if isinstance(statement, Loop):
            yield from walk(statement.body)
