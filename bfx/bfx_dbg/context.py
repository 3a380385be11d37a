"""Debugger context and connection helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Union

from ..bfxdbg.protocol import ClientCommand, DebugStateMessage, ExitMessage, MetadataMessage, StdStreamMessage
from ..bfxdbg.transport import DebugTransport, TransportConfig, TransportError

LOGGER = logging.getLogger("bfx.bfx_dbg.context")

StopMessage = Union[DebugStateMessage, ExitMessage, None]


@dataclass
class DebuggerContext:
    """Holds shared CLI debugger state."""

    host: str = "127.0.0.1"
    port: int = 0
    json_output: bool = False
    timeout: Optional[float] = None
    metadata: Optional[MetadataMessage] = None
    last_state: Optional[DebugStateMessage] = None
    exit_code: Optional[int] = None
    output: List[StdStreamMessage] = field(default_factory=list)
    _transport: Optional[DebugTransport] = field(default=None, init=False, repr=False)

    @property
    def finished(self) -> bool:
        return self.exit_code is not None

    @property
    def connected(self) -> bool:
        return self._transport is not None and self._transport.connected

    def ensure_transport(self) -> DebugTransport:
        """Connect on first use and wait for the first stop."""
        if self._transport is not None:
            return self._transport
        transport = DebugTransport(TransportConfig(host=self.host, port=self.port))
        transport.connect()
        self._transport = transport
        self.wait_for_stop()
        return transport

    def wait_for_stop(self) -> StopMessage:
        """Consume messages until the program pauses, exits or disconnects."""
        transport = self._transport
        if transport is None:
            raise TransportError("not connected")
        while True:
            message = transport.next_message(timeout=self.timeout)
            if message is None:
                if self.exit_code is None:
                    LOGGER.warning("interpreter closed the connection")
                return None
            if isinstance(message, MetadataMessage):
                self.metadata = message
            elif isinstance(message, StdStreamMessage):
                self.output.append(message)
            elif isinstance(message, DebugStateMessage):
                self.last_state = message
                return message
            elif isinstance(message, ExitMessage):
                self.exit_code = message.code
                self.last_state = None
                return message

    def send(self, command: ClientCommand) -> StopMessage:
        """Send *command* while paused and return the next stop."""
        transport = self.ensure_transport()
        if self.finished:
            raise TransportError(f"program already exited with code {self.exit_code}")
        transport.send(command)
        return self.wait_for_stop()

    def take_output(self) -> List[StdStreamMessage]:
        pending = list(self.output)
        self.output.clear()
        return pending

    def disconnect(self) -> None:
        transport = self._transport
        if transport is None:
            return
        try:
            transport.close()
        except OSError as exc:
            LOGGER.debug("transport close failed: %s", exc)
        self._transport = None
