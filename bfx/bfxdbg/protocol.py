"""Debug protocol messages and their JSON-lines encoding.

Server messages carry their kind in ``type``; client commands carry theirs in
``operation``. One JSON object per line, UTF-8 encoded.
"""

from __future__ import annotations

import json
from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Union

from .. import bfx_constants as const


class DebugProtocolError(RuntimeError):
    """Raised when a protocol line cannot be decoded."""


def _to_int(value: Any) -> Optional[int]:
    try:
        if value is None or isinstance(value, bool):
            return None
        return int(value)
    except (TypeError, ValueError):
        return None


def _ensure_int_list(value: Any) -> List[int]:
    if isinstance(value, (list, tuple)):
        ints: List[int] = []
        for item in value:
            maybe = _to_int(item)
            ints.append(0 if maybe is None else maybe & const.CELL_MASK)
        return ints
    return []


@dataclass
class MetadataMessage:
    file_name: str
    file_path: str
    content: str
    type: str = const.MSG_METADATA


@dataclass
class DebugStateMessage:
    statement: Dict[str, Any]
    position: Dict[str, int]
    cursor: int
    tape: List[int] = field(default_factory=list)
    type: str = const.MSG_DEBUG_STATE

    @property
    def current(self) -> Optional[int]:
        if 0 <= self.cursor < len(self.tape):
            return self.tape[self.cursor]
        return None


@dataclass
class ExitMessage:
    code: int
    type: str = const.MSG_EXIT


@dataclass
class StdStreamMessage:
    """Program output forwarded over the protocol.

    ``value`` holds the raw bytes decoded as latin-1 so every byte survives the
    JSON round trip; :attr:`data` restores them.
    """

    value: str
    type: str = const.MSG_STD_OUT

    @classmethod
    def from_bytes(cls, data: bytes, stream: str = const.MSG_STD_OUT) -> "StdStreamMessage":
        return cls(value=data.decode("latin-1"), type=stream)

    @property
    def data(self) -> bytes:
        return self.value.encode("latin-1")


@dataclass
class ClientCommand:
    operation: str
    cell: Optional[int] = None
    value: Optional[int] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"operation": self.operation}
        if self.cell is not None:
            payload["cell"] = self.cell
        if self.value is not None:
            payload["value"] = self.value
        return payload


ServerMessage = Union[MetadataMessage, DebugStateMessage, ExitMessage, StdStreamMessage]


def encode(message: Union[ServerMessage, ClientCommand, Dict[str, Any]]) -> bytes:
    if isinstance(message, ClientCommand):
        payload = message.to_dict()
    elif isinstance(message, dict):
        payload = message
    else:
        payload = asdict(message)
    return json.dumps(payload, separators=(",", ":")).encode("utf-8") + b"\n"


def decode_line(line: Union[bytes, str]) -> Dict[str, Any]:
    if isinstance(line, bytes):
        try:
            line = line.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise DebugProtocolError(f"invalid utf-8 in protocol line: {exc}") from exc
    try:
        payload = json.loads(line)
    except json.JSONDecodeError as exc:
        raise DebugProtocolError(f"invalid json in protocol line: {exc}") from exc
    if not isinstance(payload, dict):
        raise DebugProtocolError("protocol line is not a json object")
    return payload


def parse_command(payload: Dict[str, Any]) -> ClientCommand:
    """Convert a decoded client line into a :class:`ClientCommand`.

    Unknown operations are returned as-is so the session can ignore them.
    """
    return ClientCommand(
        operation=str(payload.get("operation") or ""),
        cell=_to_int(payload.get("cell")),
        value=_to_int(payload.get("value")),
    )


def parse_server_message(payload: Dict[str, Any]) -> ServerMessage:
    message_type = str(payload.get("type") or "")
    if message_type not in const.SERVER_MESSAGES:
        raise DebugProtocolError(f"unknown server message type '{message_type}'")
    if message_type == const.MSG_METADATA:
        return MetadataMessage(
            file_name=str(payload.get("file_name") or ""),
            file_path=str(payload.get("file_path") or ""),
            content=str(payload.get("content") or ""),
        )
    if message_type == const.MSG_DEBUG_STATE:
        statement = payload.get("statement")
        position = payload.get("position")
        return DebugStateMessage(
            statement=statement if isinstance(statement, dict) else {},
            position=position if isinstance(position, dict) else {},
            cursor=_to_int(payload.get("cursor")) or 0,
            tape=_ensure_int_list(payload.get("tape")),
        )
    if message_type == const.MSG_EXIT:
        return ExitMessage(code=_to_int(payload.get("code")) or 0)
    # std-out / std-err
    return StdStreamMessage(value=str(payload.get("value") or ""), type=message_type)
