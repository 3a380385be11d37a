"""
Client transport for the bfx debug protocol.

Connects to a ``bfx run --debug-port`` session over TCP, decodes the JSON
lines the interpreter sends on a reader thread and queues them for the
caller. Commands are written as single JSON lines.
"""

from __future__ import annotations

import logging
import queue
import socket
import threading
import time
from dataclasses import dataclass, field
from typing import Optional

from .. import bfx_constants as const
from .protocol import ClientCommand, DebugProtocolError, ServerMessage, decode_line, encode, parse_server_message

LOGGER = logging.getLogger("bfx.bfxdbg.transport")


class TransportError(RuntimeError):
    """Raised when the transport cannot complete an operation."""


@dataclass
class TransportConfig:
    host: str = const.DEFAULT_DEBUG_HOST
    port: int = 0
    connect_timeout: float = 2.0
    reconnect_backoff: float = 0.2
    max_backoff: float = 2.0
    max_retries: int = 10


@dataclass
class DebugTransport:
    """Line-oriented TCP connection to a paused/running interpreter."""

    config: TransportConfig = field(default_factory=TransportConfig)

    _sock: Optional[socket.socket] = field(init=False, default=None)
    _send_lock: threading.Lock = field(init=False, default_factory=threading.Lock)
    _reader_thread: Optional[threading.Thread] = field(init=False, default=None)
    _messages: "queue.Queue[Optional[ServerMessage]]" = field(init=False, default_factory=queue.Queue)
    _shutdown: bool = field(init=False, default=False)
    _connected: bool = field(init=False, default=False)

    @property
    def connected(self) -> bool:
        return self._connected

    def connect(self, *, retry: bool = True) -> None:
        if self._sock is not None:
            return
        if self._shutdown:
            raise TransportError("transport closed")
        sock = self._connect_with_backoff(retry=retry)
        sock.settimeout(None)
        self._sock = sock
        self._connected = True
        self._reader_thread = threading.Thread(target=self._reader_loop, name="bfx-dbg-reader", daemon=True)
        self._reader_thread.start()
        LOGGER.info("connected to %s:%d", self.config.host, self.config.port)

    def _connect_with_backoff(self, *, retry: bool) -> socket.socket:
        attempt = 0
        backoff = self.config.reconnect_backoff
        last_error: Optional[OSError] = None
        while not self._shutdown:
            attempt += 1
            try:
                return socket.create_connection(
                    (self.config.host, self.config.port),
                    timeout=self.config.connect_timeout,
                )
            except OSError as exc:
                last_error = exc
                if not retry:
                    break
                if self.config.max_retries > 0 and attempt >= self.config.max_retries:
                    break
                time.sleep(backoff)
                backoff = min(backoff * 2, self.config.max_backoff)
        if last_error is None:
            raise TransportError("connect failed: transport closed")
        raise TransportError(f"connect failed: {last_error}") from last_error

    def _reader_loop(self) -> None:
        buffer = b""
        sock = self._sock
        while not self._shutdown and sock is not None:
            try:
                chunk = sock.recv(4096)
            except OSError as exc:
                LOGGER.debug("reader stopped: %s", exc)
                break
            if not chunk:
                break
            buffer += chunk
            while b"\n" in buffer:
                line, buffer = buffer.split(b"\n", 1)
                if not line.strip():
                    continue
                try:
                    message = parse_server_message(decode_line(line))
                except DebugProtocolError as exc:
                    LOGGER.warning("dropping malformed message: %s", exc)
                    continue
                self._messages.put(message)
        self._connected = False
        # wake any waiter
        self._messages.put(None)

    def send(self, command: ClientCommand) -> None:
        sock = self._sock
        if sock is None or not self._connected:
            raise TransportError("not connected")
        data = encode(command)
        try:
            with self._send_lock:
                sock.sendall(data)
        except OSError as exc:
            self._connected = False
            raise TransportError(f"send failed: {exc}") from exc
        LOGGER.debug("sent %s", command.operation)

    def next_message(self, timeout: Optional[float] = None) -> Optional[ServerMessage]:
        """Return the next server message.

        ``None`` means the interpreter closed the connection. Raises
        :class:`TransportError` when *timeout* expires first.
        """
        try:
            message = self._messages.get(timeout=timeout)
        except queue.Empty:
            raise TransportError("timed out waiting for the interpreter") from None
        if message is None:
            # keep the end-of-stream marker for later callers
            self._messages.put(None)
        return message

    def close(self) -> None:
        self._shutdown = True
        sock = self._sock
        self._sock = None
        if sock is not None:
            try:
                sock.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            sock.close()
        if self._reader_thread is not None and self._reader_thread.is_alive():
            self._reader_thread.join(timeout=0.5)
        self._connected = False
