"""Torrent filter: query compiler and the input line it is typed into.

Query syntax, whitespace separated:

    t:<host>      torrent uses a tracker on <host>
    p:<n>  p<<n>  p><n>   progress equal/below/above n percent
    s<<n>  s><n>  size at most/at least n MiB
    s:<c>  status by letter: i(dle) s(eeding) l(eeching) e(rror)
           p(aused) n (pending) h(ashing) m(agnet)

Anything else is matched against the torrent name.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from axon.logging import get_structlog
from axon.protocol import Criterion, Operation, ResourceKind, filter_subscribe
from axon.tui import keys
from axon.tui.component import Component, InputResult, RenderTarget
from axon.tui.keys import Key, KeyKind
from axon.tui.text import FG_CYAN, FG_RESET
from axon.tui.widgets import Input, Text

log = get_structlog()

STATUS_CODES = {
    "i": "idle",
    "s": "seeding",
    "l": "leeching",
    "e": "error",
    "p": "paused",
    "n": "pending",
    "h": "hashing",
    "m": "magnet",
}

_PROGRESS_OPS = {":": Operation.EQ, "<": Operation.LT, ">": Operation.GT}
_SIZE_OPS = {"<": Operation.LTE, ">": Operation.GTE}


class FilterMode(Enum):
    INSENSITIVE = "i"
    SENSITIVE = "s"

    def cycle(self) -> FilterMode:
        if self is FilterMode.INSENSITIVE:
            return FilterMode.SENSITIVE
        return FilterMode.INSENSITIVE


def _parse_float(s: str) -> float | None:
    try:
        return float(s)
    except ValueError:
        return None


def _dropped(token: str, reason: str) -> None:
    log.debug("filter_token_dropped", token=token, reason=reason)


def compile_query(query: str, mode: FilterMode = FilterMode.INSENSITIVE) -> list[Criterion]:
    """Compile a filter query into torrent criteria.

    Tokens with a known prefix but an unusable value are dropped. The name
    criterion, if any, comes last.
    """
    criteria: list[Criterion] = []
    name: list[str] = []

    for token in query.split():
        # Unfinished criteria and non-ASCII prefixes are plain text
        if len(token) < 3 or not token[:2].isascii():
            name.append(token)
            continue

        code, op, rest = token[0], token[1], token[2:]
        if code == "t":
            if op == ":":
                criteria.append(Criterion("tracker_urls", Operation.HAS, rest))
            else:
                _dropped(token, "tracker needs ':'")
        elif code == "p":
            n = _parse_float(rest)
            if n is None:
                _dropped(token, "progress is not a number")
            elif op not in _PROGRESS_OPS:
                _dropped(token, "unknown progress operator")
            else:
                criteria.append(Criterion("progress", _PROGRESS_OPS[op], n / 100.0))
        elif code == "s":
            n = _parse_float(rest)
            if n is not None:
                if op in _SIZE_OPS:
                    criteria.append(Criterion("size", _SIZE_OPS[op], n * 1024.0 * 1024.0))
                else:
                    _dropped(token, "unknown size operator")
            elif rest[0] in STATUS_CODES:
                criteria.append(Criterion("status", Operation.EQ, STATUS_CODES[rest[0]]))
            else:
                _dropped(token, "unknown status")
        else:
            name.append(token)

    if name:
        op = Operation.ILIKE if mode is FilterMode.INSENSITIVE else Operation.LIKE
        criteria.append(Criterion("name", op, " ".join(name)))
    return criteria


class Filter(Component):
    """The filter line shown under the torrent list.

    Every edit recompiles the query and resubscribes the torrent list under
    the filter's own serial. ``Enter`` and ``Esc`` are left to the parent.
    """

    def __init__(self, serial: int) -> None:
        self.serial = serial
        self.mode = FilterMode.INSENSITIVE
        self.line = Input("", 1)

    def name(self) -> str:
        return "filter"

    def criteria(self) -> list[Criterion]:
        return compile_query(self.line.content, self.mode)

    def update(self, ctx: Any) -> None:
        ctx.send(filter_subscribe(self.serial, ResourceKind.TORRENT, self.criteria()))

    def reset(self, ctx: Any) -> None:
        """Clear the query and subscribe to every torrent again."""
        self.line.clear()
        ctx.send(filter_subscribe(self.serial, ResourceKind.TORRENT, []))

    def format(self, active: bool) -> str:
        label = f"Filter[{self.mode.value}]: "
        if active:
            return f"{FG_CYAN}{label}{FG_RESET}{self.line.format_active()}"
        return label + self.line.format_inactive()

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        Text(self.format(True)).render(target, width, height, x_off, y_off)

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        inp = self.line
        if key == Key.ctrl("s"):
            self.mode = self.mode.cycle()
            self.update(ctx)
        elif key == keys.HOME:
            inp.home()
        elif key == keys.END:
            inp.end()
        elif key == keys.LEFT:
            inp.cursor_left()
        elif key == keys.RIGHT:
            inp.cursor_right()
        elif key == keys.BACKSPACE:
            inp.backspace()
            self.update(ctx)
        elif key == keys.DELETE:
            inp.delete()
            self.update(ctx)
        elif key.kind is KeyKind.CHAR and key != keys.ENTER:
            inp.push(key.value)
            self.update(ctx)
        else:
            return InputResult.unconsumed(key)
        return InputResult.rerender()
