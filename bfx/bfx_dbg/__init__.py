"""
bfx-dbg CLI package.

Interactive debugger client for ``bfx run --debug-port``. Use ``bfx-dbg
--port N`` to attach once the interpreter has announced its port.
"""

from __future__ import annotations

from .cli import main

__all__ = ["main"]
__version__ = "0.1.0"
