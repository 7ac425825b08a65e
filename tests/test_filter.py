"""Tests for the filter query compiler and filter line."""

from axon.filter import Filter, FilterMode, compile_query
from axon.protocol import Criterion, Operation
from axon.tui import keys
from axon.tui.keys import Key
from axon.tui.text import strip_styles


class TestCompileQuery:
    """Tests for compile_query."""

    def test_mixed_query(self):
        assert compile_query("p>50 s:seeding foo bar") == [
            Criterion("progress", Operation.GT, 0.5),
            Criterion("status", Operation.EQ, "seeding"),
            Criterion("name", Operation.ILIKE, "foo bar"),
        ]

    def test_tracker(self):
        assert compile_query("t:example.org") == [
            Criterion("tracker_urls", Operation.HAS, "example.org")
        ]

    def test_progress_operators(self):
        assert compile_query("p:10 p<20") == [
            Criterion("progress", Operation.EQ, 0.1),
            Criterion("progress", Operation.LT, 0.2),
        ]

    def test_size_in_mib(self):
        assert compile_query("s>2 s<0.5") == [
            Criterion("size", Operation.GTE, 2 * 1024 * 1024),
            Criterion("size", Operation.LTE, 0.5 * 1024 * 1024),
        ]

    def test_status_letters(self):
        crits = compile_query("s:i s:l s:e s:p s:n s:h s:m")
        assert [c.value for c in crits] == [
            "idle",
            "leeching",
            "error",
            "paused",
            "pending",
            "hashing",
            "magnet",
        ]

    def test_bad_values_are_dropped(self):
        assert compile_query("p>x s:q t=foo s=4") == []

    def test_short_tokens_are_names(self):
        assert compile_query("p> ab") == [Criterion("name", Operation.ILIKE, "p> ab")]

    def test_case_sensitive_mode(self):
        assert compile_query("Foo", FilterMode.SENSITIVE) == [
            Criterion("name", Operation.LIKE, "Foo")
        ]

    def test_empty(self):
        assert compile_query("   ") == []


def test_mode_cycles():
    assert FilterMode.INSENSITIVE.cycle() is FilterMode.SENSITIVE
    assert FilterMode.SENSITIVE.cycle() is FilterMode.INSENSITIVE


class TestFilterInput:
    """Tests for the Filter component."""

    def test_typing_resubscribes(self, ctx):
        flt = Filter(serial=7)
        for c in "ab":
            assert flt.input(ctx, Key.char(c), 20, 1).is_rerender
        assert len(ctx.sent) == 2
        last = ctx.sent[-1]
        assert last["type"] == "FILTER_SUBSCRIBE"
        assert last["serial"] == 7
        assert last["kind"] == "torrent"
        assert last["criteria"] == [{"field": "name", "op": "ilike", "value": "ab"}]

    def test_cursor_keys_do_not_resubscribe(self, ctx):
        flt = Filter(serial=1)
        for key in (keys.HOME, keys.END, keys.LEFT, keys.RIGHT):
            assert flt.input(ctx, key, 20, 1).is_rerender
        assert ctx.sent == []

    def test_ctrl_s_switches_mode(self, ctx):
        flt = Filter(serial=1)
        flt.input(ctx, Key.char("x"), 20, 1)
        flt.input(ctx, Key.ctrl("s"), 20, 1)
        assert flt.mode is FilterMode.SENSITIVE
        assert ctx.sent[-1]["criteria"][0]["op"] == "like"
        assert "Filter[s]" in strip_styles(flt.format(False))

    def test_enter_and_escape_left_to_parent(self, ctx):
        flt = Filter(serial=1)
        assert flt.input(ctx, keys.ENTER, 20, 1).is_unconsumed
        assert flt.input(ctx, keys.ESC, 20, 1).is_unconsumed

    def test_reset_subscribes_to_everything(self, ctx):
        flt = Filter(serial=3)
        flt.input(ctx, Key.char("x"), 20, 1)
        flt.reset(ctx)
        assert flt.line.content == ""
        assert ctx.sent[-1]["criteria"] == []
        assert ctx.sent[-1]["serial"] == 3
