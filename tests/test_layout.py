"""Tests for splits, tabs and overlays."""

import pytest

from axon.protocol import RpcVersion
from axon.tui import keys
from axon.tui.component import Component, InputResult, RenderFn
from axon.tui.keys import Key
from axon.tui.layout import ErrorOverlay, HSplit, Overlay, Tabs, Unit, VSplit
from axon.tui.text import FG_CYAN, FG_RED, strip_styles


class Box(Component):
    """Component that records its geometry and the keys it gets."""

    def __init__(self, label: str = "box", result: InputResult | None = None) -> None:
        self.label = label
        self.result = result
        self.keys: list[Key] = []
        self.rects: list[tuple[int, int, int, int]] = []
        self.messages: list = []

    def name(self) -> str:
        return self.label

    def render(self, target, width, height, x_off, y_off) -> None:
        self.rects.append((width, height, x_off, y_off))
        target.append(f"<{self.label}>")

    def input(self, ctx, key, width, height) -> InputResult:
        self.keys.append(key)
        if self.result is not None:
            return self.result
        return InputResult.unconsumed(key)

    def rpc(self, ctx, msg) -> bool:
        self.messages.append(msg)
        return True


class TestUnit:
    """Tests for split sizes."""

    def test_lines_clamped(self):
        assert Unit.Lines(5).resolve(3) == 3
        assert Unit.Lines(-2).resolve(3) == 0

    def test_percent_floors(self):
        assert Unit.Percent(0.2).resolve(99) == 19
        assert Unit.Percent(1.5).resolve(10) == 10


class TestSplits:
    """Tests for VSplit and HSplit."""

    def test_vsplit_geometry(self):
        left, right = Box("l"), Box("r")
        VSplit(left, right, None, Unit.Lines(4)).render([], 10, 5, 1, 1)
        assert left.rects == [(4, 5, 1, 1)]
        # One column goes to the divider
        assert right.rects == [(5, 5, 6, 1)]

    def test_vsplit_without_divider(self):
        left, right = Box("l"), Box("r")
        VSplit(left, right, None, Unit.Lines(4), draw_div=False).render([], 10, 5, 1, 1)
        assert right.rects == [(6, 5, 5, 1)]

    def test_vsplit_active_half_highlighted(self):
        target: list[str] = []
        VSplit(Box(), Box(), True, Unit.Lines(4)).render(target, 10, 4, 1, 1)
        dividers = [t for t in target if "│" in t]
        assert len(dividers) == 4
        assert [FG_CYAN in d for d in dividers] == [True, True, False, False]

    def test_hsplit_geometry(self):
        top, bot = Box("t"), Box("b")
        HSplit(top, bot, None, Unit.Lines(3)).render([], 10, 10, 1, 1)
        assert top.rects == [(10, 3, 1, 1)]
        assert bot.rects == [(10, 6, 1, 5)]

    def test_hsplit_full_top_has_no_divider(self):
        target: list[str] = []
        top, bot = Box("t"), Box("b")
        HSplit(top, bot, None, Unit.Lines(10)).render(target, 10, 10, 1, 1)
        assert not any("─" in t for t in target)
        assert bot.rects == [(10, 0, 1, 11)]


class TestTabs:
    """Tests for the tab strip."""

    def test_requires_tabs(self):
        with pytest.raises(ValueError):
            Tabs([])

    def test_name(self):
        assert Tabs([Box("a"), Box("b")]).name() == "tabs: a | b"

    def test_active_tab_rendered_below_header(self):
        a, b = Box("a"), Box("b")
        target: list[str] = []
        Tabs([a, b], active=1).render(target, 20, 6, 1, 1)
        assert a.rects == []
        assert b.rects == [(20, 5, 1, 2)]
        header = strip_styles("".join(t for t in target if t != "<b>"))
        assert "a" in header and "b" in header

    def test_switch_on_unconsumed_keys(self, ctx):
        tabs = Tabs([Box("a"), Box("b")])
        assert tabs.input(ctx, Key.char("l"), 10, 5).is_rerender
        assert tabs.active == 1
        assert tabs.input(ctx, keys.RIGHT, 10, 5).is_unconsumed
        assert tabs.input(ctx, keys.LEFT, 10, 5).is_rerender
        assert tabs.active == 0

    def test_close_removes_tab(self, ctx):
        a = Box("a")
        b = Box("b", InputResult.close())
        tabs = Tabs([a, b], active=1)
        assert tabs.input(ctx, Key.char("q"), 10, 5).is_rerender
        assert tabs.tabs == [a]
        assert tabs.active == 0

    def test_close_last_tab_closes_tabs(self, ctx):
        tabs = Tabs([Box("a", InputResult.close())])
        assert tabs.input(ctx, Key.char("q"), 10, 5).is_close

    def test_replace_swaps_active_tab(self, ctx):
        new = Box("new")
        tabs = Tabs([Box("a", InputResult.replace_with(new))])
        tabs.input(ctx, Key.char("x"), 10, 5)
        assert tabs.active_tab is new

    def test_rpc_goes_to_active_tab(self, ctx):
        a, b = Box("a"), Box("b")
        Tabs([a, b], active=1).rpc(ctx, RpcVersion(0, 1))
        assert a.messages == []
        assert b.messages == [RpcVersion(0, 1)]


class TestOverlay:
    """Tests for Overlay and ErrorOverlay."""

    def test_invalid_dimensions(self):
        with pytest.raises(ValueError):
            Overlay(Box(), Box(), (0, 3))

    def test_box_centred_over_lower_layer(self):
        top, below = Box("top"), Box("below")
        target: list[str] = []
        Overlay(top, below, (4, 2), title="T").render(target, 20, 10, 1, 1)
        assert below.rects == [(20, 10, 1, 1)]
        # x = 1 + 10 - (2 + 1), y = 1 + 5 - (1 + 1), interior one further in
        assert top.rects == [(4, 2, 9, 5)]
        assert "┌─T──┐" in strip_styles("".join(target))

    def test_close_hands_back_lower_layer(self, ctx):
        below = Box("below")
        overlay = Overlay(Box("top", InputResult.close()), below, (4, 2))
        res = overlay.input(ctx, Key.char("x"), 20, 10)
        assert res.is_replace
        assert res.node is below

    def test_rpc_reaches_both_layers(self, ctx):
        top, below = Box("top"), Box("below")
        assert Overlay(top, below, (4, 2)).rpc(ctx, RpcVersion(0, 1)) is True
        assert top.messages == below.messages == [RpcVersion(0, 1)]

    def test_error_overlay_size_and_colour(self):
        overlay = ErrorOverlay("boom", Box(), title="Connection")
        assert overlay.dimensions == (len("Connection") + 2, 1)
        assert overlay.box_color == FG_RED

    @pytest.mark.parametrize("key", [keys.ESC, keys.BACKSPACE, keys.DELETE, Key.char("q")])
    def test_error_overlay_dismiss(self, ctx, key):
        below = Box()
        res = ErrorOverlay("boom", below).input(ctx, key, 20, 10)
        assert res.is_replace
        assert res.node is below
        assert below.keys == []

    def test_error_overlay_passes_other_keys(self, ctx):
        below = Box()
        overlay = ErrorOverlay("boom", below)
        assert overlay.input(ctx, keys.UP, 20, 10).is_unconsumed
        assert below.keys == [keys.UP]


def test_render_fn_inside_split():
    calls = []
    split = HSplit(RenderFn(lambda *a: calls.append(a[1:])), Box(), None, Unit.Lines(2))
    split.render([], 8, 5, 1, 1)
    assert calls == [(8, 2, 1, 1)]
