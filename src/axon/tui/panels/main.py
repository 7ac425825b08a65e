"""Main panel: torrent list, tracker pane, pinned details and the server footer."""

from __future__ import annotations

import math
from enum import Enum
from typing import TYPE_CHECKING, Any

from axon.filter import Filter
from axon.formatting import date_diff_now, fmt_size, fmt_throttle, ratio
from axon.protocol import ResourceKind, ServerMessage, Torrent, filter_subscribe
from axon.resources import ResourceMirror
from axon.tui import keys
from axon.tui.component import (
    CloseOnInput,
    Component,
    IgnoreRpc,
    InputResult,
    RenderFn,
    RenderStateFn,
    RenderTarget,
)
from axon.tui.keys import Key
from axon.tui.layout import HSplit, Overlay, Tabs, Unit, VSplit
from axon.tui.panels.details import DetailsPanel
from axon.tui.text import BG_RED, BG_RESET, FG_CYAN, FG_RED, FG_RESET, AlignX, display_width
from axon.tui.widgets import Text

if TYPE_CHECKING:
    from axon.config import TUIConfig

FOOTER_ROWS = 2
# Columns of a torrent stats line besides its variable-width fields
STATS_FIXED_WIDTH = 62


class Focus(Enum):
    TORRENTS = "torrents"
    DETAILS = "details"
    FILTER = "filter"


def _colours(selected: bool, error: bool) -> tuple[str, str]:
    if selected and error:
        return FG_CYAN + BG_RED, FG_RESET + BG_RESET
    if selected:
        return FG_CYAN, FG_RESET
    if error:
        return FG_RED, FG_RESET
    return "", ""


def _throttle_width(throttle: int | None) -> int:
    if throttle is None:
        return 6
    return 1 if throttle == -1 else 10


def _ratio_width(up: int, down: int) -> int:
    if down == 0:
        return 4
    r = up / down
    return 3 + (1 if r <= 1 else 1 + math.floor(math.log10(r)))


class MainPanel(Component):
    def __init__(self, tui: TUIConfig) -> None:
        self.tui = tui
        self.mirror = ResourceMirror()
        self.focus = Focus.TORRENTS
        self.filter: Filter | None = None
        self.filter_serial = 0
        self.trackers_displ = False
        # Built when the first torrent is pinned, dropped with the last pin
        self.details_tabs: Tabs | None = None

    def name(self) -> str:
        return "torrents"

    def init(self, ctx: Any) -> None:
        ctx.send(filter_subscribe(ctx.next_serial(), ResourceKind.SERVER, []))
        ctx.send(filter_subscribe(ctx.next_serial(), ResourceKind.TRACKER, []))
        self.filter_serial = ctx.next_serial()
        ctx.send(filter_subscribe(self.filter_serial, ResourceKind.TORRENT, []))

    def rpc(self, ctx: Any, msg: ServerMessage) -> bool:
        changed = self.mirror.apply(msg)
        self._sync_details(ctx)
        if self.focus is Focus.DETAILS and not self.mirror.details.items:
            self.focus = Focus.TORRENTS
        return changed

    def _sync_details(self, ctx: Any) -> None:
        """Match the details tabs to the pinned torrents, keeping existing tabs."""
        details = self.mirror.details
        if not details.items:
            self.details_tabs = None
            return
        if self.details_tabs is None:
            self.details_tabs = Tabs([DetailsPanel(t) for t in details.items], details.selected)
            self.details_tabs.init(ctx)
            return
        known = {tab.torrent.id: tab for tab in self.details_tabs.tabs}
        tabs = []
        for t in details.items:
            tab = known.get(t.id)
            if tab is None:
                tab = DetailsPanel(t)
                tab.init(ctx)
            else:
                tab.torrent = t
            tabs.append(tab)
        self.details_tabs.tabs = tabs
        self.details_tabs.active = details.selected

    # ─────────────────────────────────────────────────────────────────────
    # Geometry
    # ─────────────────────────────────────────────────────────────────────

    def _body_height(self, height: int) -> int:
        return max(0, height - FOOTER_ROWS)

    def _list_area_height(self, height: int) -> int:
        body = self._body_height(height)
        if self.mirror.details.items:
            body -= self.tui.details_height
        return max(0, body)

    def list_height(self, height: int) -> int:
        """Rows of torrents visible for a terminal ``height`` rows high."""
        rows = self._list_area_height(height)
        if self.filter is not None:
            rows -= 1
        return max(0, rows)

    def selected_torrent(self) -> Torrent | None:
        if self.focus is Focus.DETAILS:
            return self.mirror.details.current()
        return self.mirror.torrents.current()

    # ─────────────────────────────────────────────────────────────────────
    # Input
    # ─────────────────────────────────────────────────────────────────────

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        if key == Key.ctrl("f"):
            return self._toggle_filter(ctx)
        if self.focus is Focus.FILTER:
            return self._filter_input(ctx, key, width, height)
        if key == Key.char("t"):
            self.trackers_displ = not self.trackers_displ
            return InputResult.rerender()
        if key == Key.char("e"):
            return self._errors_overlay(key)
        if self.focus is Focus.DETAILS:
            return self._details_input(ctx, key, width, height)
        return self._torrents_input(ctx, key, height)

    def _toggle_filter(self, ctx: Any) -> InputResult:
        if self.filter is None:
            self.filter = Filter(self.filter_serial)
            self.focus = Focus.FILTER
        elif self.focus is Focus.FILTER:
            self.filter.reset(ctx)
            self.filter = None
            self.focus = Focus.TORRENTS
        else:
            self.focus = Focus.FILTER
        return InputResult.rerender()

    def _filter_input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        if key in (keys.ENTER, keys.ESC):
            self.focus = Focus.TORRENTS
            return InputResult.rerender()
        return self.filter.input(ctx, key, width, 1)

    def _torrents_input(self, ctx: Any, key: Key, height: int) -> InputResult:
        lst = self.mirror.torrents
        rows = self.list_height(height)
        moved = None
        if key == keys.HOME:
            moved = lst.home()
        elif key == keys.END:
            moved = lst.end(rows)
        elif key == keys.PAGE_UP:
            moved = lst.page_up(rows)
        elif key == keys.PAGE_DOWN:
            moved = lst.page_down(rows)
        elif key in (keys.UP, Key.char("k")):
            moved = lst.up()
        elif key in (keys.DOWN, Key.char("j")):
            moved = lst.down(rows)
        elif key == keys.ENTER and self.filter is not None:
            self.focus = Focus.FILTER
            moved = True
        elif key == Key.char("d") and lst.items:
            self.mirror.pin(lst.current())
            self._sync_details(ctx)
            self.focus = Focus.DETAILS
            moved = True
        elif key == Key.char("J") and self.mirror.details.items:
            self.focus = Focus.DETAILS
            moved = True
        if moved:
            return InputResult.rerender()
        return InputResult.unconsumed(key)

    def _details_input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        details = self.mirror.details
        if key == Key.char("K"):
            self.focus = Focus.TORRENTS
            return InputResult.rerender()
        if key == keys.HOME:
            details.selected = 0
            self._sync_details(ctx)
            return InputResult.rerender()
        if key == keys.END:
            details.selected = len(details.items) - 1
            self._sync_details(ctx)
            return InputResult.rerender()

        tabs = self.details_tabs
        res = tabs.input(ctx, key, width, self.tui.details_height)
        if res.is_close:
            # The last pin closed itself
            self.mirror.unpin_selected()
        else:
            details.items = [tab.torrent for tab in tabs.tabs]
            details.selected = tabs.active
        self._sync_details(ctx)
        if not details.items:
            self.focus = Focus.TORRENTS
        if res.is_close or res.is_replace:
            return InputResult.rerender()
        return res

    def error_lines(self, t: Torrent) -> list[str]:
        """The torrent's own error and the errors of the trackers it uses."""
        lines = []
        if t.error is not None:
            lines.append(t.error)
        for group in self.mirror.trackers_of(t):
            other_errs = [o.error for o in group.others if o.torrent_id == t.id and o.error]
            if group.base.error is not None and group.base.torrent_id == t.id:
                lines.append(f"{group.host}: {group.base.error}")
            elif other_errs:
                lines.append(f"{group.host}: {other_errs.pop(0)}")
            lines.extend(f" {e}" for e in other_errs)
        return lines

    def _errors_overlay(self, key: Key) -> InputResult:
        t = self.selected_torrent()
        lines = self.error_lines(t) if t is not None else []
        if not lines:
            return InputResult.unconsumed(key)
        width = max([len("Errors")] + [display_width(line) for line in lines])

        def draw(target: RenderTarget, w: int, h: int, x: int, y: int, state: list[str]) -> None:
            for i, line in enumerate(state[:h]):
                Text(line).render(target, w, 1, x, y + i)

        top = CloseOnInput(IgnoreRpc(RenderStateFn(draw, lines)))
        return InputResult.replace_with(
            Overlay(top, self, (width, len(lines)), box_color=FG_RED, title="Errors")
        )

    # ─────────────────────────────────────────────────────────────────────
    # Rendering
    # ─────────────────────────────────────────────────────────────────────

    def _draw_torrents(self, target: RenderTarget, width: int, height: int, x: int, y: int) -> None:
        rows = max(0, height - (1 if self.filter is not None else 0))
        lst = self.mirror.torrents
        if lst.dirty or lst.height != rows:
            lst.clamp(rows)
        visible = lst.items[lst.lower : lst.lower + rows]

        w_status = max((len(t.status.value) for t in visible), default=0)
        w_tu = max((_throttle_width(t.throttle_up) for t in visible), default=0)
        w_td = max((_throttle_width(t.throttle_down) for t in visible), default=0)
        w_rat = max(
            (_ratio_width(t.transferred_up, t.transferred_down) for t in visible), default=0
        )
        w_right = STATS_FIXED_WIDTH + w_status + w_tu + w_td + w_rat

        for i, t in enumerate(visible):
            selected = self.focus is Focus.TORRENTS and lst.lower + i == lst.selected
            c_s, c_e = _colours(selected, t.error is not None)
            Text(f"{c_s}{t.display_name}{c_e}").render(
                target, max(0, width - w_right - 1), 1, x, y + i
            )
            stats = (
                f"{c_s}{round(t.progress * 100):03}% {t.status.value:^{w_status}}"
                f" {fmt_size(t.rate_up):>10}[{fmt_throttle(t.throttle_up):^{w_tu}}]↑"
                f" {fmt_size(t.rate_down):>10}[{fmt_throttle(t.throttle_down):^{w_td}}]↓"
                f"   {ratio(t.transferred_up, t.transferred_down):>{w_rat}.2f}"
                f"  {fmt_size(t.transferred_up):>10}↑  {fmt_size(t.transferred_down):>10}↓{c_e}"
            )
            Text(stats, align_x=AlignX.RIGHT).render(
                target, w_right, 1, x + max(0, width - w_right), y + i
            )

        if self.filter is not None:
            line = self.filter.format(self.focus is Focus.FILTER)
            Text(line).render(target, width, 1, x, y + rows)

    def _draw_trackers(self, target: RenderTarget, width: int, height: int, x: int, y: int) -> None:
        sel = self.selected_torrent()
        for i, group in enumerate(self.mirror.trackers[: max(0, height)]):
            used = sel is not None and group.host in sel.tracker_urls
            c_s, c_e = _colours(used, group.has_error(sel.id if sel is not None else None))
            Text(f"{c_s}{len(group)} {group.host}{c_e}").render(target, width, 1, x, y + i)

    def _draw_details(self, target: RenderTarget, width: int, height: int, x: int, y: int) -> None:
        if self.details_tabs is not None:
            self.details_tabs.render(target, width, height, x, y)

    def footer(self) -> str:
        s = self.mirror.server
        return (
            f"Server: {self.mirror.server_version} {date_diff_now(s.started)},"
            f" {fmt_size(s.free_space)}"
            f"   {fmt_size(s.rate_up)}[{fmt_throttle(s.throttle_up, '∞')}]↑"
            f" {fmt_size(s.rate_down)}[{fmt_throttle(s.throttle_down, '∞')}]↓"
            f"   Session: {ratio(s.ses_transferred_up, s.ses_transferred_down):.2f},"
            f" {fmt_size(s.ses_transferred_up)}↑ {fmt_size(s.ses_transferred_down)}↓"
            f"   Lifetime: {ratio(s.transferred_up, s.transferred_down):.2f},"
            f" {fmt_size(s.transferred_up)}↑ {fmt_size(s.transferred_down)}↓"
        )

    def _draw_footer(self, target: RenderTarget, width: int, height: int, x: int, y: int) -> None:
        Text(self.footer()).render(target, width, height, x, y)

    def layout(self, height: int) -> HSplit:
        body = RenderFn(self._draw_torrents)
        if self.mirror.details.items:
            body = HSplit(
                body,
                RenderFn(self._draw_details),
                None,
                Unit.Lines(self._list_area_height(height)),
                draw_div=False,
            )
        if self.trackers_displ:
            body = VSplit(
                RenderFn(self._draw_trackers),
                body,
                None,
                Unit.Percent(self.tui.tracker_pane_percent),
            )
        footer = RenderFn(self._draw_footer)
        return HSplit(body, footer, None, Unit.Lines(self._body_height(height)))

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        self.layout(height).render(target, width, height, x_off, y_off)
