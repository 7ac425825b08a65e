"""Login form shown while no session exists."""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Callable

from axon.connection import ConnectError
from axon.logging import get_structlog
from axon.tui import keys
from axon.tui.component import Component, InputResult, RenderTarget
from axon.tui.keys import Key, KeyKind
from axon.tui.layout import ErrorOverlay
from axon.tui.text import FG_CYAN, FG_RESET, AlignX, goto, x_offsets
from axon.tui.widgets import Input, PasswordInput

if TYPE_CHECKING:
    from axon.config import ConnectionConfig

log = get_structlog()

DEFAULT_SERVER = "ws://:8412"
# Cursor before the port colon, where the host goes
DEFAULT_SERVER_POS = 6

# (server, password) -> the component that replaces the login form
Connector = Callable[[str, str], Component]


class LoginPanel(Component):
    def __init__(self, defaults: ConnectionConfig, connector: Connector) -> None:
        if defaults.server:
            self.server = Input(defaults.server)
        else:
            self.server = Input(DEFAULT_SERVER, DEFAULT_SERVER_POS)
        self.password = PasswordInput(defaults.password)
        self.srv_selected = True
        self._connector = connector

    def name(self) -> str:
        return "login"

    @property
    def _field(self) -> Input:
        return self.server if self.srv_selected else self.password

    def lines(self) -> list[str]:
        if self.srv_selected:
            srv = f"{FG_CYAN}Server{FG_RESET}: {self.server.format_active()}"
            pwd = f"Pass: {self.password.format_inactive()}"
        else:
            srv = f"Server: {self.server.format_inactive()}"
            pwd = f"{FG_CYAN}Pass{FG_RESET}: {self.password.format_active()}"
        return [
            "Welcome to axon, the synapse TUI",
            "Login to a synapse instance:",
            srv,
            pwd,
        ]

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        lines = self.lines()
        x = x_off + x_offsets(AlignX.CENTER_LONGEST_LEFT, lines, width)[0]
        y = y_off + height // 3
        for i, line in enumerate(lines):
            target.append(goto(x, y + i) + line)

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        field = self._field
        if key == keys.HOME:
            field.home()
        elif key == keys.END:
            field.end()
        elif key in (keys.UP, keys.DOWN, keys.TAB):
            self.srv_selected = not self.srv_selected
        elif key == keys.LEFT:
            field.cursor_left()
        elif key == keys.RIGHT:
            field.cursor_right()
        elif key == keys.BACKSPACE:
            field.backspace()
        elif key == keys.DELETE:
            field.delete()
        elif key == keys.ENTER:
            return self.submit()
        elif key.kind is KeyKind.CHAR:
            field.push(key.value)
        else:
            return InputResult.unconsumed(key)
        return InputResult.rerender()

    def submit(self) -> InputResult:
        """Connect with the entered credentials."""
        try:
            main = self._connector(self.server.content, self.password.content)
        except ConnectError as e:
            log.info("login_failed", title=e.title, error=str(e))
            return InputResult.replace_with(ErrorOverlay(str(e), self, title=e.title))
        return InputResult.replace_with(main)
