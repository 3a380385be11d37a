"""Output helpers for bfx-dbg."""

from __future__ import annotations

import json
import sys
from typing import Any, Dict, Iterable, Mapping, Optional

from .. import bfx_constants as const
from ..bfxdbg.protocol import DebugStateMessage, StdStreamMessage
from .context import DebuggerContext


def _json_dump(payload: Mapping[str, Any]) -> str:
    return json.dumps(payload, indent=2, sort_keys=True)


def emit_result(ctx: DebuggerContext, *, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
    """Emit a successful command result."""
    if ctx.json_output:
        payload: Dict[str, Any] = {"status": "ok"}
        if data is not None:
            payload["result"] = data
        else:
            payload["message"] = message
        print(_json_dump(payload))
    else:
        print(message)


def emit_error(ctx: DebuggerContext, *, message: str, data: Optional[Mapping[str, Any]] = None) -> None:
    """Emit an error message respecting JSON mode."""
    payload: Dict[str, Any] = {"status": "error", "error": message}
    if data:
        payload["details"] = dict(data)
    if ctx.json_output:
        print(_json_dump(payload))
    else:
        print(f"error: {message}")


def emit_program_output(ctx: DebuggerContext, messages: Iterable[StdStreamMessage]) -> None:
    """Forward buffered program output to our own stdout/stderr (text mode only)."""
    if ctx.json_output:
        return
    for message in messages:
        stream = sys.stderr if message.type == const.MSG_STD_ERR else sys.stdout
        stream.write(message.value)
        stream.flush()


def state_summary(state: DebugStateMessage) -> Dict[str, Any]:
    return {
        "statement": state.statement.get("type"),
        "line": state.position.get("line"),
        "column": state.position.get("column"),
        "cursor": state.cursor,
        "value": state.current,
    }


def render_state(state: DebugStateMessage, *, width: int = 16) -> str:
    """Format a paused snapshot with the tape window around the cursor."""
    info = state_summary(state)
    lines = [
        f"paused at {info['statement']} ({info['line']}:{info['column']})  cursor={state.cursor} value={info['value']}",
    ]
    if state.tape:
        start = max(0, min(state.cursor - width // 2, len(state.tape) - width))
        cells = []
        for index in range(start, min(start + width, len(state.tape))):
            cell = f"{state.tape[index]:3d}"
            cells.append(f"[{cell}]" if index == state.cursor else f" {cell} ")
        lines.append(f"  {start:5d}: " + "".join(cells))
    return "\n".join(lines)


__all__ = ["emit_result", "emit_error", "emit_program_output", "render_state", "state_summary"]
