"""Command base classes for bfx-dbg."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Sequence

from ..context import DebuggerContext


@dataclass
class Command:
    """A named debugger command with optional aliases and an argument synopsis."""

    name: str
    description: str
    aliases: Sequence[str] = field(default_factory=tuple)
    usage: str = ""

    def run(self, ctx: DebuggerContext, argv: List[str]) -> int:
        raise NotImplementedError("Command must implement run()")

    def format_help(self) -> str:
        synopsis = f"{self.name} {self.usage}".strip()
        line = f"{synopsis:<20} {self.description}"
        if self.aliases:
            line += f" (aliases: {', '.join(self.aliases)})"
        return line
