"""I/O endpoints and the registry that multiplexes them for the engine.

The registry is owned by the interpreter thread. Connection-handler threads of
the network listener never touch the live endpoint list; they hand new
endpoints over through the listener's inbox queue, which the interpreter
drains before each read or write.
"""

from __future__ import annotations

import io
import json
import logging
import mimetypes
import os
import queue
import threading
from dataclasses import dataclass
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import IO, Any, Callable, List, Optional, Tuple

from . import bfx_constants as const
from .waiters import EngineWaiters

LOGGER = logging.getLogger("bfx.io")

Disposer = Callable[[], None]


@dataclass
class IOSourceConfig:
    file_path: str = const.DEFAULT_FILE_PATH
    http_address: str = const.DEFAULT_HTTP_ADDRESS


def parse_bind_address(address: str) -> Tuple[str, int]:
    """Split ``host:port`` (``:8080`` binds every interface)."""
    host, sep, port = address.rpartition(":")
    if not sep:
        host, port = "", address
    try:
        return host.strip("[]"), int(port)
    except ValueError:
        raise ValueError(f"invalid bind address '{address}'") from None


def binary_stream(stream: Any) -> Any:
    if isinstance(stream, io.TextIOBase) and hasattr(stream, "buffer"):
        return stream.buffer
    return stream


class Endpoint:
    """A byte output sink, an error sink and a byte input source."""

    def __init__(self, kind: str, out: IO[bytes], err: IO[bytes], inp: IO[bytes]) -> None:
        self.kind = kind
        self.out = binary_stream(out)
        self.err = binary_stream(err)
        self.inp = binary_stream(inp)

    def write_byte(self, value: int) -> None:
        self.out.write(bytes((value & const.CELL_MASK,)))
        self.out.flush()

    def write_error(self, text: str) -> None:
        self.err.write(text.encode("utf-8"))
        self.err.flush()

    def read_byte(self) -> Optional[int]:
        """Return the next input byte, or ``None`` at end of stream."""
        data = self.inp.read(1)
        if not data:
            return None
        return data[0]

    def __repr__(self) -> str:
        return f"<Endpoint kind={self.kind}>"


def open_file(path: str) -> Tuple[Endpoint, Disposer]:
    """Open (creating if needed) *path* read-write as an endpoint.

    Reads and writes share a single file offset. The returned disposer closes
    the file and must run at shutdown.
    """
    fd = os.open(path, os.O_RDWR | os.O_CREAT, 0o644)
    handle = os.fdopen(fd, "r+b", buffering=0)
    endpoint = Endpoint(const.TARGET_FILE, handle, handle, handle)
    return endpoint, handle.close


_SNIFF_PREFIXES = (
    (b"%PDF-", "application/pdf"),
    (b"\x89PNG\r\n\x1a\n", "image/png"),
    (b"GIF87a", "image/gif"),
    (b"GIF89a", "image/gif"),
    (b"\xff\xd8\xff", "image/jpeg"),
    (b"PK\x03\x04", "application/zip"),
    (b"\x1f\x8b\x08", "application/x-gzip"),
)

_HTML_MARKERS = (b"<!doctype html", b"<html", b"<head", b"<body", b"<p", b"<div", b"<h1")


def content_type_for(resource: str) -> Optional[str]:
    """Content type implied by a resource's file extension, if known."""
    guessed, _encoding = mimetypes.guess_type(resource)
    return guessed


def sniff_content_type(body: bytes) -> str:
    """Infer a content type from the first bytes of a response body."""
    head = body[:512]
    stripped = head.lstrip(b"\t\n\x0c\r ")
    lowered = stripped.lower()
    for marker in _HTML_MARKERS:
        if lowered.startswith(marker):
            return "text/html; charset=utf-8"
    if lowered.startswith(b"<?xml"):
        return "text/xml; charset=utf-8"
    for prefix, kind in _SNIFF_PREFIXES:
        if head.startswith(prefix):
            return kind
    if stripped[:1] in (b"{", b"["):
        try:
            json.loads(body.decode("utf-8"))
        except (UnicodeDecodeError, ValueError):
            pass
        else:
            return "application/json"
    if any(byte < 0x09 or 0x0D < byte < 0x20 and byte != 0x1B for byte in head):
        return "application/octet-stream"
    try:
        head.decode("utf-8")
    except UnicodeDecodeError:
        return "application/octet-stream"
    return "text/plain; charset=utf-8"


class NetworkEndpoint(Endpoint):
    """Endpoint backed by one accepted HTTP request.

    Output accumulates until the response cycle finishes; the handler thread
    then writes it as the response body.
    """

    def __init__(self, request_body: bytes, err: IO[bytes]) -> None:
        self._body = io.BytesIO()
        super().__init__(const.TARGET_HTTP, self._body, err, io.BytesIO(request_body))
        self._finished = threading.Event()

    def finish(self) -> None:
        self._finished.set()

    @property
    def finished(self) -> bool:
        return self._finished.is_set()

    def wait_finished(self, timeout: Optional[float] = None) -> bool:
        return self._finished.wait(timeout)

    def payload(self) -> bytes:
        return self._body.getvalue()


class _ConnectionHandler(BaseHTTPRequestHandler):
    server_version = "bfx"

    def _handle(self) -> None:
        self.server.listener.handle_connection(self)  # type: ignore[attr-defined]

    do_GET = do_POST = do_PUT = do_PATCH = do_DELETE = _handle

    def read_body(self) -> bytes:
        length = int(self.headers.get("Content-Length") or 0)
        return self.rfile.read(length) if length > 0 else b""

    def log_message(self, format: str, *args: Any) -> None:
        LOGGER.debug("http %s - %s", self.address_string(), format % args)


class _ListenerServer(ThreadingHTTPServer):
    allow_reuse_address = True
    daemon_threads = True

    def __init__(self, server_address, listener: "NetworkListener") -> None:
        super().__init__(server_address, _ConnectionHandler)
        self.listener = listener


class NetworkListener:
    """Background HTTP listener; one endpoint per accepted connection.

    The listening socket is bound before :meth:`start` returns, so connections
    made after the switch completes are never refused.
    """

    def __init__(
        self,
        address: str,
        waiters: EngineWaiters,
        *,
        err: IO[bytes],
        content_type: Optional[str] = None,
        close_timeout: float = 5.0,
    ) -> None:
        self.bind = parse_bind_address(address)
        self.waiters = waiters
        self.content_type = content_type
        self.close_timeout = close_timeout
        self.inbox: "queue.Queue[NetworkEndpoint]" = queue.Queue()
        self._err = err
        self._lock = threading.Lock()
        self._closed = False
        self._server: Optional[_ListenerServer] = None
        self._thread: Optional[threading.Thread] = None
        self._issued: List[NetworkEndpoint] = []

    @property
    def address(self) -> Optional[Tuple[str, int]]:
        server = self._server
        if server is None:
            return None
        host, port = server.server_address[:2]
        return str(host), int(port)

    def start(self) -> None:
        self._server = _ListenerServer(self.bind, self)
        self.waiters.add(const.WAITER_PROGRAM, 1)
        if self.waiters.count(const.WAITER_HTTP_CONNECTION) == 0:
            self.waiters.add(const.WAITER_HTTP_CONNECTION, 1)
        self._thread = threading.Thread(target=self._server.serve_forever, name="bfx-http", daemon=True)
        self._thread.start()
        LOGGER.info("http listener on %s:%d", *self.address)

    def handle_connection(self, handler: _ConnectionHandler) -> None:
        endpoint = NetworkEndpoint(handler.read_body(), self._err)
        self.waiters.add(const.WAITER_WRITE, 1)
        try:
            with self._lock:
                rejected = self._closed
                if not rejected:
                    self._issued.append(endpoint)
                    self.inbox.put(endpoint)
            if rejected:
                handler.send_error(503, "target closed")
                return
            self.waiters.done_if_pending(const.WAITER_HTTP_CONNECTION)
            LOGGER.debug("connection from %s registered", handler.address_string())
            endpoint.wait_finished()
            self._respond(handler, endpoint.payload())
        finally:
            self.waiters.done(const.WAITER_WRITE)

    def _respond(self, handler: _ConnectionHandler, body: bytes) -> None:
        handler.send_response(200)
        handler.send_header("Content-Type", self.content_type or sniff_content_type(body))
        handler.send_header("Content-Length", str(len(body)))
        handler.end_headers()
        handler.wfile.write(body)
        handler.wfile.flush()

    def drain(self) -> List[NetworkEndpoint]:
        endpoints: List[NetworkEndpoint] = []
        while True:
            try:
                endpoints.append(self.inbox.get_nowait())
            except queue.Empty:
                return endpoints

    def close(self) -> None:
        """Stop accepting, complete every pending response, release ``program``."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            issued = list(self._issued)
            self._issued.clear()
        server = self._server
        if server is not None:
            server.shutdown()
        for endpoint in issued:
            endpoint.finish()
        if not self.waiters.wait(const.WAITER_WRITE, timeout=self.close_timeout):
            LOGGER.warning("http responses still pending after %.1fs", self.close_timeout)
        if server is not None:
            server.server_close()
        self.waiters.done_if_pending(const.WAITER_HTTP_CONNECTION)
        self.waiters.done(const.WAITER_PROGRAM)
        LOGGER.info("http listener closed")


class IOTargetRegistry:
    """Tracks the active target kind and its live endpoints."""

    def __init__(
        self,
        default: Endpoint,
        config: Optional[IOSourceConfig] = None,
        waiters: Optional[EngineWaiters] = None,
    ) -> None:
        self.default = default
        self.config = config or IOSourceConfig()
        self.waiters = waiters or EngineWaiters()
        self._kind = const.TARGET_STD
        self._endpoints: List[Endpoint] = [default]
        self._lock = threading.Lock()
        self._listener: Optional[NetworkListener] = None
        self._disposers: List[Disposer] = []

    @property
    def kind(self) -> str:
        with self._lock:
            return self._kind

    @property
    def endpoints(self) -> List[Endpoint]:
        with self._lock:
            return list(self._endpoints)

    @property
    def network_address(self) -> Optional[Tuple[str, int]]:
        listener = self._listener
        return listener.address if listener is not None else None

    # ------------------------------------------------------------------
    # Target switching

    def switch(self, target: str) -> None:
        if self.kind == const.TARGET_HTTP:
            self._close_listener()
        handlers = {
            const.TARGET_STD: self.set_console,
            const.TARGET_FILE: self.open_file,
            const.TARGET_HTTP: self.open_network_listener,
            const.TARGET_TCP: self.set_tcp,
        }
        try:
            handler = handlers[target]
        except KeyError:
            raise ValueError(f"unknown io target '{target}'") from None
        handler()
        LOGGER.info("io target switched to %s", target)

    def set_console(self) -> None:
        with self._lock:
            self._kind = const.TARGET_STD
            self._endpoints = [self.default]

    def open_file(self) -> None:
        endpoint, disposer = open_file(self.config.file_path)
        self._disposers.append(disposer)
        with self._lock:
            self._kind = const.TARGET_FILE
            self._endpoints = [endpoint]

    def open_network_listener(self) -> None:
        listener = NetworkListener(
            self.config.http_address,
            self.waiters,
            err=self.default.err,
            content_type=content_type_for(self.config.file_path),
        )
        listener.start()
        with self._lock:
            self._kind = const.TARGET_HTTP
            self._endpoints = []
            self._listener = listener

    def set_tcp(self) -> None:
        LOGGER.warning("tcp io target is not implemented; output is discarded")
        with self._lock:
            self._kind = const.TARGET_TCP
            self._endpoints = []

    def _close_listener(self) -> None:
        listener = self._listener
        self._listener = None
        with self._lock:
            self._endpoints = []
        if listener is not None:
            listener.close()

    # ------------------------------------------------------------------
    # Data path (interpreter thread only)

    def _drain(self) -> None:
        listener = self._listener
        if listener is None:
            return
        fresh = listener.drain()
        if fresh:
            with self._lock:
                self._endpoints.extend(fresh)

    def await_connection(self) -> None:
        """Block on the ``http-connection`` waiter until an endpoint is attached."""
        while True:
            self._drain()
            if self.endpoints:
                return
            self.waiters.wait(const.WAITER_HTTP_CONNECTION)
            self._drain()
            if self.endpoints:
                return
            self._rearm_connection_waiter()

    def _rearm_connection_waiter(self) -> None:
        if self.waiters.count(const.WAITER_HTTP_CONNECTION) == 0:
            self.waiters.add(const.WAITER_HTTP_CONNECTION, 1)

    def broadcast(self, value: int) -> None:
        self._drain()
        for endpoint in self.endpoints:
            endpoint.write_byte(value)

    def finish_response_cycle(self) -> None:
        """Network sentinel: detach every endpoint and complete its response."""
        with self._lock:
            detached = self._endpoints
            self._endpoints = []
        self._rearm_connection_waiter()
        for endpoint in detached:
            if isinstance(endpoint, NetworkEndpoint):
                endpoint.finish()
        LOGGER.debug("response cycle finished for %d connection(s)", len(detached))

    def read(self) -> int:
        """Read one byte from the first endpoint (or the default); 0 at EOF."""
        self._drain()
        endpoints = self.endpoints
        target = endpoints[0] if endpoints else self.default
        value = target.read_byte()
        return 0 if value is None else value

    def write_error(self, text: str) -> None:
        self.default.write_error(text)

    # ------------------------------------------------------------------
    # Shutdown

    def close(self) -> None:
        """Close any listener and run every disposer exactly once."""
        self._close_listener()
        self.waiters.wait(const.WAITER_PROGRAM)
        disposers, self._disposers = self._disposers, []
        for disposer in disposers:
            try:
                disposer()
            except OSError as exc:
                LOGGER.warning("disposer failed: %s", exc)
