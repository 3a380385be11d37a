"""
bfxdbg - debug protocol toolkit shared by the interpreter and its clients.

    protocol.py   → message types and JSON-lines framing
    session.py    → interpreter-side session (stdio or one TCP client)
    transport.py  → client-side TCP transport
"""

from .protocol import (  # noqa: F401
    ClientCommand,
    DebugProtocolError,
    DebugStateMessage,
    ExitMessage,
    MetadataMessage,
    StdStreamMessage,
    decode_line,
    encode,
    parse_command,
    parse_server_message,
)
from .session import DebugSession, SessionStream  # noqa: F401
from .transport import DebugTransport, TransportConfig, TransportError  # noqa: F401

__all__ = [
    "ClientCommand",
    "DebugProtocolError",
    "DebugStateMessage",
    "ExitMessage",
    "MetadataMessage",
    "StdStreamMessage",
    "decode_line",
    "encode",
    "parse_command",
    "parse_server_message",
    "DebugSession",
    "SessionStream",
    "DebugTransport",
    "TransportConfig",
    "TransportError",
]

__version__ = "0.1.0"
