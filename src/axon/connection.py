"""Websocket session with a synapse daemon.

One ``ConnectionManager`` lives for the whole process. ``connect`` performs
the handshake on the caller's thread; ``run`` is the receive loop, parked
until a session exists, which then polls the non-blocking socket every
``poll_interval`` seconds and routes what it reads to the view.
"""

from __future__ import annotations

import json
import ssl
import threading
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable
from urllib.parse import urlencode, urlsplit, urlunsplit

import websocket
from websocket import ABNF

from axon.logging import get_structlog
from axon.protocol import (
    MAJOR_VERSION,
    MINOR_VERSION,
    ProtocolError,
    ResourcesExtant,
    ResourcesRemoved,
    RpcVersion,
    ServerError,
    ServerMessage,
    decode_server_message,
    is_compatible,
    subscribe,
    unsubscribe,
)

if TYPE_CHECKING:
    from axon.tui.view import View

log = get_structlog()

# Raised by a non-blocking socket with nothing to read
_WOULD_BLOCK = (BlockingIOError, ssl.SSLWantReadError, websocket.WebSocketTimeoutException)


class ConnectError(Exception):
    """A connection attempt failed; ``title`` names the stage that failed."""

    def __init__(self, message: str, title: str = "RPC") -> None:
        super().__init__(message)
        self.title = title


class VersionMismatch(ConnectError):
    """The server speaks a protocol version this client cannot use."""

    def __init__(self, version: RpcVersion) -> None:
        super().__init__(
            f"Server version {version} incompatible with client {MAJOR_VERSION}.{MINOR_VERSION}"
        )
        self.version = version


class SessionError(ConnectionError):
    """Sending failed because there is no live session."""


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    HANDSHAKING = "handshaking"
    CONNECTED = "connected"


def build_url(server: str, password: str) -> str:
    """Add the password to the server URL.

    Raises:
        ConnectError: If the URL is not a ws:// or wss:// URL with a host.
    """
    try:
        parts = urlsplit(server.strip())
        host = parts.hostname
    except ValueError as e:
        raise ConnectError(str(e), title="Url") from e
    if parts.scheme not in ("ws", "wss"):
        raise ConnectError(f"Unsupported scheme in {server!r}, expected ws or wss", title="Url")
    if not host:
        raise ConnectError(f"No host in {server!r}", title="Url")
    query = urlencode({"password": password})
    if parts.query:
        query = f"{parts.query}&{query}"
    return urlunsplit(parts._replace(query=query))


class ConnectionManager:
    """Owns the websocket and the per-session serial counter."""

    def __init__(
        self,
        connect_timeout: float = 10.0,
        poll_interval: float = 2.5,
        socket_factory: Callable[[], Any] = websocket.WebSocket,
    ) -> None:
        self.connect_timeout = connect_timeout
        self.poll_interval = poll_interval
        self._socket_factory = socket_factory

        self._cond = threading.Condition()
        self._state = ConnectionState.DISCONNECTED
        self._ws: Any = None
        self._running = True
        self._partial = b""

        self._serial_lock = threading.Lock()
        self._serial = 0

        self.server_version: RpcVersion | None = None

    @property
    def state(self) -> ConnectionState:
        with self._cond:
            return self._state

    @property
    def connected(self) -> bool:
        return self.state is ConnectionState.CONNECTED

    @property
    def running(self) -> bool:
        with self._cond:
            return self._running

    def next_serial(self) -> int:
        with self._serial_lock:
            serial = self._serial
            self._serial += 1
            return serial

    # ─────────────────────────────────────────────────────────────────────
    # Session lifecycle
    # ─────────────────────────────────────────────────────────────────────

    def connect(self, server: str, password: str) -> RpcVersion:
        """Open a session and perform the version handshake.

        Returns:
            The version the server announced.

        Raises:
            ConnectError: If the URL is invalid, the server cannot be reached
                or the handshake fails (``VersionMismatch`` for an
                incompatible server). The manager stays disconnected.
        """
        url = build_url(server, password)
        self.disconnect()
        with self._cond:
            self._state = ConnectionState.HANDSHAKING

        log.info("connecting", server=server)
        ws = self._socket_factory()
        try:
            ws.connect(url, timeout=self.connect_timeout)
            first = ws.recv()
        except (TimeoutError, websocket.WebSocketTimeoutException) as e:
            self._abort(ws)
            raise ConnectError(
                f"Timeout while connecting to server ({self.connect_timeout:g}s)"
            ) from e
        except (websocket.WebSocketException, OSError) as e:
            self._abort(ws)
            raise ConnectError(str(e) or type(e).__name__) from e

        try:
            version = decode_server_message(first)
        except ProtocolError as e:
            self._abort(ws)
            raise ConnectError(f"Invalid handshake: {e}") from e
        if not isinstance(version, RpcVersion):
            self._abort(ws)
            raise ConnectError(f"Expected version announcement, got {type(version).__name__}")
        if not is_compatible(version):
            self._abort(ws)
            log.warning("version_mismatch", server_version=str(version))
            raise VersionMismatch(version)

        ws.settimeout(0)
        with self._cond:
            self._ws = ws
            self._partial = b""
            self._state = ConnectionState.CONNECTED
            self.server_version = version
            self._cond.notify_all()
        with self._serial_lock:
            self._serial = 0
        log.info("connected", server=server, version=str(version))
        return version

    def _abort(self, ws: Any) -> None:
        with self._cond:
            self._state = ConnectionState.DISCONNECTED
        self._close_quietly(ws)

    def _close_quietly(self, ws: Any) -> None:
        try:
            ws.close(timeout=0)
        except (websocket.WebSocketException, OSError) as e:
            log.debug("socket_teardown_failed", error=str(e))

    def disconnect(self) -> None:
        """Close the current session, if any."""
        with self._cond:
            ws, self._ws = self._ws, None
            self._state = ConnectionState.DISCONNECTED
            self.server_version = None
            self._cond.notify_all()
        if ws is not None:
            log.info("disconnected")
            self._close_quietly(ws)

    def shutdown(self) -> None:
        """Stop the receive loop and close the session."""
        with self._cond:
            self._running = False
            self._cond.notify_all()
        self.disconnect()

    def send(self, msg: dict[str, Any]) -> None:
        """Send one client message.

        Raises:
            SessionError: If there is no session or the socket refuses the frame.
        """
        with self._cond:
            ws = self._ws if self._state is ConnectionState.CONNECTED else None
        if ws is None:
            raise SessionError("Not connected")
        try:
            ws.send(json.dumps(msg))
        except (websocket.WebSocketException, OSError) as e:
            raise SessionError(f"Send failed: {e}") from e
        log.debug("sent", type=msg.get("type"), serial=msg.get("serial"))

    # ─────────────────────────────────────────────────────────────────────
    # Receive loop
    # ─────────────────────────────────────────────────────────────────────

    def run(self, view: View) -> None:
        """Receive loop; returns after ``shutdown``."""
        while True:
            with self._cond:
                while self._running and self._state is not ConnectionState.CONNECTED:
                    self._cond.wait()
                if not self._running:
                    return
                ws = self._ws

            self.drain(ws, view)

            with self._cond:
                if self._running and self._ws is ws:
                    self._cond.wait(self.poll_interval)

    def drain(self, ws: Any, view: View) -> None:
        """Handle every frame that can be read from ``ws`` without blocking."""
        while self.running:
            try:
                frame = ws.recv_frame()
            except _WOULD_BLOCK:
                return
            except websocket.WebSocketConnectionClosedException as e:
                self._lost(ws, view, str(e) or "Connection to server lost")
                return
            except (websocket.WebSocketException, OSError) as e:
                if not self._is_current(ws):
                    return
                log.warning("receive_failed", error=str(e))
                view.global_error(str(e) or type(e).__name__, "RPC")
                return
            if not self._handle_frame(ws, frame, view):
                return

    def _is_current(self, ws: Any) -> bool:
        with self._cond:
            return self._ws is ws

    def _handle_frame(self, ws: Any, frame: Any, view: View) -> bool:
        """Process one frame; False once the session is over."""
        op = frame.opcode
        if op == ABNF.OPCODE_PING:
            try:
                ws.pong(frame.data)
            except (websocket.WebSocketException, OSError) as e:
                log.warning("pong_failed", error=str(e))
                view.global_error(str(e) or type(e).__name__, "RPC")
            return True
        if op == ABNF.OPCODE_PONG:
            return True
        if op == ABNF.OPCODE_CLOSE:
            reason = bytes(frame.data[2:]).decode("utf-8", "replace")
            self._lost(ws, view, reason or "Server closed the connection")
            return False

        self._partial += frame.data if isinstance(frame.data, bytes) else frame.data.encode()
        if not frame.fin:
            return True
        data, self._partial = self._partial, b""

        try:
            msg = decode_server_message(data)
        except ProtocolError as e:
            log.warning("frame_decode_failed", error=str(e))
            view.global_error(str(e), "RPC")
            return True
        return self.dispatch(ws, msg, view)

    def dispatch(self, ws: Any, msg: ServerMessage, view: View) -> bool:
        """Answer session bookkeeping messages and route the rest to the view."""
        try:
            if isinstance(msg, ResourcesExtant):
                self.send(subscribe(self.next_serial(), msg.ids))
                return True
            if isinstance(msg, ResourcesRemoved):
                self.send(unsubscribe(self.next_serial(), msg.ids))
        except SessionError as e:
            view.global_error(str(e), "RPC")
            return True

        if isinstance(msg, ServerError):
            log.warning("server_error", reason=msg.reason, serial=msg.serial)
            view.global_error(msg.reason, "Server")
        elif isinstance(msg, RpcVersion) and not is_compatible(msg):
            self._lost(ws, view, str(VersionMismatch(msg)))
            return False
        else:
            view.handle_message(msg)
        return True

    def _lost(self, ws: Any, view: View, reason: str) -> None:
        with self._cond:
            if self._ws is not ws:
                # Closed on purpose by disconnect()
                return
            self._ws = None
            self._state = ConnectionState.DISCONNECTED
            self.server_version = None
        self._close_quietly(ws)
        log.warning("connection_lost", reason=reason)
        view.connection_closed(reason)
