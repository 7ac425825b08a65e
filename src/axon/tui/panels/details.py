"""Pinned torrent details, one tab per torrent."""

from __future__ import annotations

from typing import Any

from axon.formatting import date_diff_now, fmt_size, fmt_throttle, ratio
from axon.protocol import Torrent
from axon.tui.component import Component, InputResult, RenderTarget
from axon.tui.keys import Key
from axon.tui.widgets import Text

def _or_unknown(value: Any, fmt=str) -> str:
    return "?" if value is None else fmt(value)


def detail_lines(t: Torrent) -> list[str]:
    return [
        f"{t.status.value}    {'Sequential' if t.sequential else 'Unordered'}"
        f"    Created: {date_diff_now(t.created)} ago"
        f"    Modified: {date_diff_now(t.modified)} ago",
        f"Rates: {fmt_size(t.rate_up)}[{fmt_throttle(t.throttle_up)}]↑"
        f" {fmt_size(t.rate_down)}[{fmt_throttle(t.throttle_down)}]↓"
        f"    Lifetime: {ratio(t.transferred_up, t.transferred_down):.2f}"
        f" {fmt_size(t.transferred_up)}↑ {fmt_size(t.transferred_down)}↓",
        f"Size: {_or_unknown(t.size, fmt_size)}    Progress: {round(t.progress * 100)}%"
        f"    Availability: {round(t.availability * 100)}%    Priority: {t.priority}",
        f"Files: {_or_unknown(t.files)}    Pieces: {_or_unknown(t.pieces)}"
        f"    P-size: {_or_unknown(t.piece_size, fmt_size)}"
        f"    Peers: {t.peers}    Trackers: {t.trackers}",
        f"Path: {t.path}",
    ]


class DetailsPanel(Component):
    """Details of one pinned torrent. ``q`` asks for the pin to be closed."""

    def __init__(self, torrent: Torrent) -> None:
        self.torrent = torrent

    def name(self) -> str:
        return self.torrent.display_name

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        for i, line in enumerate(detail_lines(self.torrent)[: max(0, height)]):
            Text(line).render(target, width, 1, x_off, y_off + i)

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        if key == Key.char("q"):
            return InputResult.close()
        return InputResult.unconsumed(key)
