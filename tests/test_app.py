"""Tests for the session loops that tie terminal, view and connection together."""

from unittest.mock import MagicMock, patch

from axon.config import Config, ConnectionConfig
from axon.tui.app import _input_loop, _render_loop, run_tui
from axon.tui.component import InputResult
from axon.tui.keys import Key
from axon.tui.view import QUIT_KEY


class ScriptedView:
    """View stand-in whose render results are scripted."""

    def __init__(self, *renders) -> None:
        self.running = True
        self.renders = list(renders)

    def wait_for_change(self, timeout: float) -> bool:
        return True

    def render(self, width: int, height: int) -> str:
        item = self.renders.pop(0)
        if not self.renders:
            self.running = False
        if isinstance(item, Exception):
            raise item
        return item


def _terminal() -> MagicMock:
    terminal = MagicMock()
    terminal.size.return_value = (80, 24)
    return terminal


class TestRenderLoop:
    """Tests for the render thread body."""

    def test_writes_frames(self):
        terminal = _terminal()
        _render_loop(ScriptedView("one", "two"), terminal, 0.01)
        assert [c.args[0] for c in terminal.write.call_args_list] == ["one", "two"]

    def test_render_failure_does_not_stop_loop(self):
        terminal = _terminal()
        _render_loop(ScriptedView(ValueError("boom"), "ok"), terminal, 0.01)
        terminal.write.assert_called_once_with("ok")

    def test_write_failure_stops_loop(self):
        terminal = _terminal()
        terminal.write.side_effect = OSError("broken pipe")
        view = ScriptedView("one", "two", "three")
        _render_loop(view, terminal, 0.01)
        assert terminal.write.call_count == 1


def test_input_loop_stops_on_close():
    terminal = _terminal()
    terminal.keys.return_value = iter([Key.char("x"), QUIT_KEY, Key.char("y")])
    view = MagicMock()
    view.input.side_effect = [InputResult.rerender(), InputResult.close()]
    _input_loop(view, terminal)
    assert view.input.call_count == 2


@patch("axon.tui.app.ConnectionManager")
@patch("axon.tui.app.Terminal")
def test_run_tui_quits_from_login(mock_terminal_cls, mock_conn_cls):
    terminal = mock_terminal_cls.return_value
    terminal.size.return_value = (80, 24)
    terminal.keys.side_effect = lambda running: iter([QUIT_KEY])

    assert run_tui(Config()) is False
    terminal.__enter__.assert_called_once()
    terminal.__exit__.assert_called_once()
    mock_conn_cls.return_value.shutdown.assert_called_once()


@patch("axon.tui.app.ConnectionManager")
@patch("axon.tui.app.Terminal")
def test_run_tui_autoconnect(mock_terminal_cls, mock_conn_cls):
    from axon.protocol import RpcVersion

    connection = mock_conn_cls.return_value
    connection.connect.return_value = RpcVersion(0, 1)
    connection.next_serial.side_effect = iter(range(100)).__next__
    terminal = mock_terminal_cls.return_value
    terminal.size.return_value = (80, 24)
    # Input ends right away, with the session still open
    terminal.keys.side_effect = lambda running: iter([])

    config = Config(connection=ConnectionConfig(server="ws://host:8412", autoconnect=True))
    with patch("axon.logging.autoconnecting"):
        logged_in = run_tui(config)

    connection.connect.assert_called_once_with("ws://host:8412", "")
    assert logged_in is True
