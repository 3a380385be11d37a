"""Interactive REPL for bfx-dbg."""

from __future__ import annotations

import logging
from typing import Optional

from prompt_toolkit import PromptSession
from prompt_toolkit.completion import WordCompleter
from prompt_toolkit.history import FileHistory, InMemoryHistory
from prompt_toolkit.patch_stdout import patch_stdout

from .commands import CommandRegistry
from .context import DebuggerContext
from .parser import PARSE_ERROR, split_command

LOGGER = logging.getLogger("bfx.bfx_dbg.repl")


class DebuggerREPL:
    """prompt_toolkit REPL dispatching to the command registry."""

    def __init__(self, ctx: DebuggerContext, registry: CommandRegistry, *, history_path: Optional[str] = None) -> None:
        self.ctx = ctx
        self.registry = registry
        self.history_path = history_path

    def _completer(self) -> WordCompleter:
        words = []
        for command in self.registry.list_commands():
            words.append(command.name)
            words.extend(command.aliases)
        return WordCompleter(words, sentence=True)

    def run(self) -> int:
        history = FileHistory(self.history_path) if self.history_path else InMemoryHistory()
        session: PromptSession = PromptSession("(bfx) ", history=history, completer=self._completer())
        while True:
            try:
                with patch_stdout():
                    line = session.prompt()
            except (EOFError, KeyboardInterrupt):
                print()
                self.ctx.disconnect()
                return 0
            self.dispatch(line)

    def dispatch(self, line: str) -> int:
        stripped = line.strip()
        if not stripped:
            return 0
        argv = split_command(stripped)
        if not argv:
            return 0
        cmd_name, *cmd_args = argv
        if cmd_name == PARSE_ERROR:
            print(f"Parse error: {cmd_args[-1] if cmd_args else stripped}")
            return 1
        command = self.registry.get(cmd_name)
        if not command:
            print(f"Unknown command: {cmd_name}")
            return 1
        try:
            return command.run(self.ctx, cmd_args)
        except SystemExit:
            raise
        except Exception as exc:  # pragma: no cover - keep the prompt alive
            LOGGER.exception("command failed")
            print(f"Command '{cmd_name}' failed: {exc}")
            return 1
