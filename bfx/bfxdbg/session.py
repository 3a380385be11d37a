"""Server-side debug session driven by the engine."""

from __future__ import annotations

import logging
import socket
import sys
import threading
from typing import IO, Any, Callable, Optional

from .. import bfx_constants as const
from .protocol import (
    ClientCommand,
    DebugStateMessage,
    ExitMessage,
    MetadataMessage,
    ServerMessage,
    StdStreamMessage,
    decode_line,
    encode,
    parse_command,
)

LOGGER = logging.getLogger("bfx.debug")

STATE_IDLE = "idle"
STATE_RUNNING = "running"
STATE_PAUSED = "paused"
STATE_FINISHED = "finished"


class DebugSession:
    """Line-protocol transport plus the Idle/Running/Paused/Finished states.

    The engine thread is the only caller. A client that disconnects detaches
    the session; the program then keeps running without further pauses.
    """

    def __init__(self, reader: IO[bytes], writer: IO[bytes], *, closer: Optional[Callable[[], None]] = None, mirrors_console: bool = False) -> None:
        self._reader = reader
        self._writer = writer
        self._closer = closer
        # console output already reaches the client as std-out/std-err
        self.mirrors_console = mirrors_console
        self._write_lock = threading.Lock()
        self.state = STATE_IDLE
        self.detached = False

    @classmethod
    def listen(cls, host: str = const.DEFAULT_DEBUG_HOST, port: int = 0, *, announce: Optional[IO[str]] = None) -> "DebugSession":
        """Accept exactly one debugger client on ``host:port``.

        The bound port is written to *announce* (stderr by default) before
        blocking in accept so a client can find an ephemeral port.
        """
        server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            server.bind((host, port))
            server.listen(1)
            bound = server.getsockname()[1]
            stream = announce if announce is not None else sys.stderr
            stream.write(f"{bound}\n")
            stream.flush()
            LOGGER.info("waiting for debugger on %s:%d", host, bound)
            conn, peer = server.accept()
        finally:
            server.close()
        LOGGER.info("debugger connected from %s:%d", *peer[:2])
        rfile = conn.makefile("rb")
        wfile = conn.makefile("wb")

        def _close() -> None:
            for handle in (rfile, wfile):
                try:
                    handle.close()
                except OSError:
                    pass
            try:
                conn.shutdown(socket.SHUT_RDWR)
            except OSError:
                pass
            conn.close()

        return cls(rfile, wfile, closer=_close)

    @property
    def attached(self) -> bool:
        return not self.detached and self.state != STATE_FINISHED

    def _send(self, message: ServerMessage) -> None:
        data = encode(message)
        with self._write_lock:
            self._writer.write(data)
            self._writer.flush()

    def open(self, file_name: str, file_path: str, content: str) -> None:
        self._send(MetadataMessage(file_name=file_name, file_path=file_path, content=content))
        self.state = STATE_RUNNING

    def send_state(self, state: DebugStateMessage) -> None:
        self.state = STATE_PAUSED
        self._send(state)

    def read_command(self) -> Optional[ClientCommand]:
        """Block for the next client command; ``None`` once the client is gone.

        Raises :class:`~bfx.bfxdbg.protocol.DebugProtocolError` for lines that
        are not valid JSON objects.
        """
        while True:
            line = self._reader.readline()
            if not line:
                LOGGER.warning("debugger disconnected; continuing without it")
                self.detached = True
                self.state = STATE_RUNNING
                return None
            if not line.strip():
                continue
            command = parse_command(decode_line(line))
            LOGGER.debug("debugger command %s", command.operation)
            return command

    def resume(self) -> None:
        if self.state == STATE_PAUSED:
            self.state = STATE_RUNNING

    def write_stream(self, data: bytes, stream: str = const.MSG_STD_OUT) -> None:
        if self.state == STATE_FINISHED:
            return
        self._send(StdStreamMessage.from_bytes(data, stream))

    def report_error(self, text: str) -> None:
        if self.mirrors_console:
            return
        self.write_stream(text.encode("utf-8"), const.MSG_STD_ERR)

    def close(self, code: int) -> None:
        """Send the exit message and release the transport; later calls are no-ops."""
        if self.state == STATE_FINISHED:
            return
        try:
            self._send(ExitMessage(code=code))
        except OSError as exc:
            LOGGER.debug("exit message not delivered: %s", exc)
        self.state = STATE_FINISHED
        closer = self._closer
        self._closer = None
        if closer is not None:
            closer()


class SessionStream:
    """Binary file-like sink that forwards writes as ``std-out``/``std-err``."""

    def __init__(self, session: DebugSession, stream: str = const.MSG_STD_OUT) -> None:
        self.session = session
        self.stream = stream

    def write(self, data: Any) -> int:
        if isinstance(data, str):
            data = data.encode("utf-8")
        if data:
            self.session.write_stream(bytes(data), self.stream)
        return len(data)

    def flush(self) -> None:
        pass
