"""Top-level view: owns the component tree and the login state.

Three threads go through the view: the input loop, the render loop and the
connection's receive loop. Every access to the tree happens under one
re-entrant lock. A separate condition carries "something changed" to the
render loop, which also repaints on a timeout in case a wake is missed.
"""

from __future__ import annotations

import threading
from contextlib import contextmanager
from enum import Enum
from typing import TYPE_CHECKING, Iterator

from axon.connection import ConnectError, SessionError
from axon.logging import get_structlog
from axon.protocol import ProtocolError, ServerMessage
from axon.tui.component import Component, InputResult, Slot
from axon.tui.keys import Key
from axon.tui.layout import ErrorOverlay
from axon.tui.panels.login import LoginPanel
from axon.tui.panels.main import MainPanel
from axon.tui.text import CLEAR_ALL

if TYPE_CHECKING:
    from axon.config import Config
    from axon.connection import ConnectionManager

log = get_structlog()

QUIT_KEY = Key.ctrl("q")


class ViewState(Enum):
    LOGGED_OUT = "logged_out"
    LOGGED_IN = "logged_in"
    ERROR_OVERLAY = "error_overlay"


class View:
    def __init__(self, config: Config, connection: ConnectionManager) -> None:
        self.config = config
        self.connection = connection
        self._lock = threading.RLock()
        self._changed = threading.Condition()
        self._dirty = True
        self._running = True
        self._logged_in = False
        self._content: Slot[Component] = Slot(self._login_panel())

    def _login_panel(self) -> LoginPanel:
        return LoginPanel(self.config.connection, self.login)

    # ─────────────────────────────────────────────────────────────────────
    # State
    # ─────────────────────────────────────────────────────────────────────

    @property
    def state(self) -> ViewState:
        with self._lock:
            if isinstance(self._content.peek(), ErrorOverlay):
                return ViewState.ERROR_OVERLAY
            return ViewState.LOGGED_IN if self._logged_in else ViewState.LOGGED_OUT

    @property
    def logged_in(self) -> bool:
        with self._lock:
            return self._logged_in

    @property
    def content(self) -> Component:
        with self._lock:
            return self._content.peek()

    @property
    def running(self) -> bool:
        with self._changed:
            return self._running

    def login(self, server: str, password: str) -> Component:
        """Connect and build the main panel; used by the login form.

        Only called while ``input`` routes a key, with the tree lock held
        once. The handshake runs with the lock released so the render loop
        keeps painting the form: while logged out nothing but the input
        thread changes the tree.

        Raises:
            ConnectError: If the connection or the initial subscriptions fail.
        """
        with self._unlocked():
            version = self.connection.connect(server, password)
        with self._lock:
            main = MainPanel(self.config.tui)
            try:
                main.init(self.connection)
            except SessionError as e:
                self.connection.disconnect()
                raise ConnectError(str(e)) from e
            main.rpc(self.connection, version)
            self._logged_in = True
        self.wake()
        return main

    @contextmanager
    def _unlocked(self) -> Iterator[None]:
        self._lock.release()
        try:
            yield
        finally:
            self._lock.acquire()

    def disconnect(self) -> None:
        """Close the session and go back to the login form."""
        with self._lock:
            self.connection.disconnect()
            self._logged_in = False
            self._content.replace(self._login_panel())
        log.info("logged_out")
        self.wake()

    # ─────────────────────────────────────────────────────────────────────
    # Routing
    # ─────────────────────────────────────────────────────────────────────

    def input(self, key: Key, width: int, height: int) -> InputResult:
        """Route one key through the tree.

        Returns ``InputResult.close()`` when the application should quit.
        """
        with self._lock:
            if key == QUIT_KEY:
                if self._logged_in:
                    self.disconnect()
                    return InputResult.rerender()
                return InputResult.close()

            try:
                res = self._content.peek().input(self.connection, key, width, height)
            except (SessionError, ProtocolError) as e:
                self.global_error(str(e), "RPC")
                return InputResult.rerender()

            if res.is_replace:
                self._content.replace(res.node)
            if not res.is_unconsumed:
                self.wake()
            # Nothing above the tree can close the view except the quit key
            return InputResult.rerender() if res.is_close else res

    def handle_message(self, msg: ServerMessage) -> bool:
        """Route a server message into the tree; True if a repaint was requested."""
        with self._lock:
            changed = self._content.peek().rpc(self.connection, msg)
        if changed:
            self.wake()
        return changed

    def global_error(self, message: str, title: str | None = None) -> None:
        """Show ``message`` in a red box over whatever is on screen."""
        log.warning("global_error", title=title, message=message)
        with self._lock:
            below = self._content.take()
            self._content.put(ErrorOverlay(message, below, title))
        self.wake()

    def connection_closed(self, reason: str) -> None:
        """The session ended without being asked to; back to the login form."""
        with self._lock:
            self._logged_in = False
            self._content.replace(self._login_panel())
        self.global_error(reason, "Connection")

    # ─────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────

    def render(self, width: int, height: int) -> str:
        """Paint the whole screen into one string."""
        target = [CLEAR_ALL]
        with self._lock:
            self._content.peek().render(target, width, height, 1, 1)
        return "".join(target)

    def wake(self) -> None:
        with self._changed:
            self._dirty = True
            self._changed.notify_all()

    def wait_for_change(self, timeout: float) -> bool:
        """Block until woken or ``timeout`` passes; True if woken."""
        with self._changed:
            if not self._dirty and self._running:
                self._changed.wait(timeout)
            dirty, self._dirty = self._dirty, False
            return dirty

    def shutdown(self) -> None:
        with self._changed:
            self._running = False
            self._changed.notify_all()
        self.connection.shutdown()
