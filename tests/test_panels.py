"""Tests for the login, details and main panels."""

from unittest.mock import MagicMock, patch

from axon.config import ConnectionConfig, TUIConfig
from axon.connection import ConnectError
from axon.protocol import ResourcesRemoved, RpcVersion, Status, UpdateResources
from axon.tui import keys
from axon.tui.component import Component
from axon.tui.keys import Key
from axon.tui.layout import ErrorOverlay, Overlay
from axon.tui.panels.details import DetailsPanel, detail_lines
from axon.tui.panels.login import LoginPanel
from axon.tui.panels.main import Focus, MainPanel
from axon.tui.text import strip_styles


def _type(panel, ctx, text: str) -> None:
    for c in text:
        panel.input(ctx, Key.char(c), 80, 24)


class TestLoginPanel:
    """Tests for the login form."""

    def test_placeholder_cursor_before_port(self, ctx):
        panel = LoginPanel(ConnectionConfig(), MagicMock())
        _type(panel, ctx, "localhost")
        assert panel.server.content == "ws://localhost:8412"

    def test_configured_defaults(self):
        panel = LoginPanel(ConnectionConfig(server="ws://a:1", password="pw"), MagicMock())
        assert panel.server.content == "ws://a:1"
        assert panel.password.content == "pw"

    def test_tab_switches_field(self, ctx):
        panel = LoginPanel(ConnectionConfig(server="ws://a:1"), MagicMock())
        panel.input(ctx, keys.TAB, 80, 24)
        _type(panel, ctx, "pw")
        assert panel.password.content == "pw"
        assert panel.server.content == "ws://a:1"
        panel.input(ctx, keys.UP, 80, 24)
        assert panel.srv_selected

    def test_enter_connects(self, ctx):
        main = Component()
        connector = MagicMock(return_value=main)
        panel = LoginPanel(ConnectionConfig(server="ws://a:1", password="pw"), connector)
        res = panel.input(ctx, keys.ENTER, 80, 24)
        connector.assert_called_once_with("ws://a:1", "pw")
        assert res.is_replace
        assert res.node is main

    def test_connect_error_shown_over_form(self, ctx):
        connector = MagicMock(side_effect=ConnectError("No host", title="Url"))
        panel = LoginPanel(ConnectionConfig(), connector)
        res = panel.input(ctx, keys.ENTER, 80, 24)
        assert isinstance(res.node, ErrorOverlay)
        assert res.node.title == "Url"
        assert res.node.below.peek() is panel

    def test_render_shows_masked_password(self):
        panel = LoginPanel(ConnectionConfig(password="secret"), MagicMock())
        target: list[str] = []
        panel.render(target, 80, 24, 1, 1)
        screen = strip_styles("".join(target))
        assert "Welcome to axon" in screen
        assert "******" in screen
        assert "secret" not in screen

    def test_unknown_keys_unconsumed(self, ctx):
        panel = LoginPanel(ConnectionConfig(), MagicMock())
        assert panel.input(ctx, keys.PAGE_DOWN, 80, 24).is_unconsumed


class TestDetailsPanel:
    """Tests for one pinned torrent's details."""

    def test_lines(self, make_torrent):
        t = make_torrent(
            name="x", path="/dl/x", progress=0.5, status=Status.SEEDING, throttle_up=-1
        )
        lines = detail_lines(t)
        assert len(lines) == 5
        assert lines[0].startswith("seeding    Unordered")
        assert "[∞]↑" in lines[1]
        assert "[global]↓" in lines[1]
        assert "Progress: 50%" in lines[2]
        assert "Size: ?" in lines[2]
        assert lines[4] == "Path: /dl/x"

    def test_q_closes(self, ctx, make_torrent):
        panel = DetailsPanel(make_torrent(name="x"))
        assert panel.name() == "x"
        assert panel.input(ctx, Key.char("q"), 80, 6).is_close
        assert panel.input(ctx, keys.UP, 80, 6).is_unconsumed


def _main_with(ctx, torrents) -> MainPanel:
    panel = MainPanel(TUIConfig())
    panel.init(ctx)
    panel.rpc(ctx, RpcVersion(0, 1))
    panel.rpc(ctx, UpdateResources(list(torrents)))
    return panel


class TestMainPanel:
    """Tests for the main panel."""

    def test_init_subscribes(self, ctx):
        panel = MainPanel(TUIConfig())
        panel.init(ctx)
        assert [(m["kind"], m["serial"], m["criteria"]) for m in ctx.sent] == [
            ("server", 0, []),
            ("tracker", 1, []),
            ("torrent", 2, []),
        ]
        assert panel.filter_serial == 2

    def test_list_height(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent()])
        assert panel.list_height(20) == 18
        panel.input(ctx, Key.char("d"), 80, 20)
        assert panel.list_height(20) == 12
        panel.input(ctx, Key.ctrl("f"), 80, 20)
        assert panel.list_height(20) == 11

    def test_navigation(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent(id=c, name=c) for c in "abc"])
        panel.input(ctx, Key.char("j"), 80, 20)
        panel.input(ctx, keys.DOWN, 80, 20)
        assert panel.selected_torrent().id == "c"
        assert panel.input(ctx, keys.DOWN, 80, 20).is_unconsumed
        panel.input(ctx, Key.char("k"), 80, 20)
        assert panel.selected_torrent().id == "b"

    def test_pin_and_focus(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent(id="a", name="a")])
        panel.input(ctx, Key.char("d"), 80, 20)
        assert panel.focus is Focus.DETAILS
        panel.input(ctx, Key.char("K"), 80, 20)
        assert panel.focus is Focus.TORRENTS
        panel.input(ctx, Key.char("J"), 80, 20)
        assert panel.focus is Focus.DETAILS

    def test_closing_last_pin_returns_focus(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent(id="a", name="a")])
        panel.input(ctx, Key.char("d"), 80, 20)
        assert panel.input(ctx, Key.char("q"), 80, 20).is_rerender
        assert len(panel.mirror.details) == 0
        assert panel.focus is Focus.TORRENTS

    def test_switch_between_pins(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent(id=c, name=c) for c in "ab"])
        panel.input(ctx, Key.char("d"), 80, 20)
        panel.input(ctx, Key.char("K"), 80, 20)
        panel.input(ctx, Key.char("j"), 80, 20)
        panel.input(ctx, Key.char("d"), 80, 20)
        assert panel.mirror.details.selected == 1
        panel.input(ctx, Key.char("h"), 80, 20)
        assert panel.mirror.details.selected == 0
        assert panel.selected_torrent().id == "a"

    def test_details_tabs_kept_across_keys(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent(id=c, name=c) for c in "ab"])
        with patch.object(DetailsPanel, "init", autospec=True) as mock_init:
            panel.input(ctx, Key.char("d"), 80, 20)
            tabs = panel.details_tabs
            panel.input(ctx, Key.char("K"), 80, 20)
            panel.input(ctx, Key.char("j"), 80, 20)
            panel.input(ctx, Key.char("d"), 80, 20)
            panel.render([], 80, 20, 1, 1)
        assert panel.details_tabs is tabs
        assert mock_init.call_count == 2
        assert [tab.torrent.id for tab in tabs.tabs] == ["a", "b"]
        assert tabs.active == 1

    def test_details_tab_follows_snapshot(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent(id="a", name="a", progress=0.1)])
        panel.input(ctx, Key.char("d"), 80, 20)
        panel.rpc(ctx, UpdateResources([make_torrent(id="a", name="a", progress=0.9)]))
        assert panel.details_tabs.active_tab.torrent.progress == 0.9

    def test_removed_pin_drops_details_tabs(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent(id="a", name="a")])
        panel.input(ctx, Key.char("d"), 80, 20)
        panel.rpc(ctx, ResourcesRemoved(["a"]))
        assert panel.details_tabs is None
        assert panel.focus is Focus.TORRENTS

    def test_filter_lifecycle(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent()])
        sent = len(ctx.sent)
        panel.input(ctx, Key.ctrl("f"), 80, 20)
        assert panel.focus is Focus.FILTER
        _type(panel, ctx, "ab")
        assert len(ctx.sent) == sent + 2
        assert ctx.sent[-1]["serial"] == panel.filter_serial
        panel.input(ctx, keys.ENTER, 80, 20)
        assert panel.focus is Focus.TORRENTS
        assert panel.filter is not None
        # Focus it again, then close it
        panel.input(ctx, Key.ctrl("f"), 80, 20)
        panel.input(ctx, Key.ctrl("f"), 80, 20)
        assert panel.filter is None
        assert ctx.sent[-1]["criteria"] == []

    def test_toggle_trackers(self, ctx):
        panel = _main_with(ctx, [])
        panel.input(ctx, Key.char("t"), 80, 20)
        assert panel.trackers_displ

    def test_errors_overlay(self, ctx, make_torrent, make_tracker):
        panel = _main_with(
            ctx,
            [
                make_torrent(
                    id="a", name="a", error="disk full", tracker_urls=["tracker.example.org"]
                ),
                make_tracker("tr", torrent_id="a", error="timed out"),
            ],
        )
        assert panel.error_lines(panel.selected_torrent()) == [
            "disk full",
            "tracker.example.org: timed out",
        ]
        res = panel.input(ctx, Key.char("e"), 80, 20)
        assert isinstance(res.node, Overlay)
        assert res.node.title == "Errors"
        # Any key closes it again
        back = res.node.input(ctx, Key.char("x"), 80, 20)
        assert back.node is panel

    def test_no_errors_no_overlay(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent()])
        assert panel.input(ctx, Key.char("e"), 80, 20).is_unconsumed

    def test_render(self, ctx, make_torrent):
        panel = _main_with(ctx, [make_torrent(name="ubuntu.iso")])
        panel.input(ctx, Key.char("t"), 80, 20)
        panel.input(ctx, Key.char("d"), 80, 20)
        target: list[str] = []
        panel.render(target, 160, 20, 1, 1)
        screen = strip_styles("".join(target))
        assert "ubuntu.iso" in screen
        assert "Server: 0.1" in screen
        assert "Path: " in screen

    def test_focus_falls_back_when_pins_removed(self, ctx, make_torrent):
        from axon.protocol import ResourcesRemoved

        panel = _main_with(ctx, [make_torrent(id="a", name="a")])
        panel.input(ctx, Key.char("d"), 80, 20)
        panel.rpc(ctx, ResourcesRemoved(ids=["a"]))
        assert panel.focus is Focus.TORRENTS
