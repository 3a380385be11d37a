"""Lightweight command parsing helpers for bfx-dbg."""

from __future__ import annotations

import shlex
from typing import List

PARSE_ERROR = "#parse-error"


def split_command(line: str) -> List[str]:
    """Split a command line into argv tokens using shlex rules."""
    if not line:
        return []
    try:
        return shlex.split(line, comments=False, posix=True)
    except ValueError as exc:
        # callers report the marker as a parse error
        return [PARSE_ERROR, str(exc)]


def parse_int(text: str) -> int:
    """Accept decimal or prefixed (``0x``/``0o``/``0b``) integers."""
    return int(text, 0)
