"""Layout combinators: splits, tab strips and modal overlays."""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from axon.tui import keys
from axon.tui.component import Component, InputResult, Renderable, RenderTarget, Slot
from axon.tui.text import FG_BLACK, FG_CYAN, FG_RED, FG_RESET, display_width, goto
from axon.tui.widgets import Text

if TYPE_CHECKING:
    from axon.protocol import ServerMessage
    from axon.tui.keys import Key


@dataclass(frozen=True)
class Unit:
    """Size of the first half of a split: ``lines`` rows/columns or a ``percent`` share."""

    lines: int | None = None
    percent: float | None = None

    @classmethod
    def Lines(cls, n: int) -> Unit:  # noqa: N802
        return cls(lines=max(0, n))

    @classmethod
    def Percent(cls, p: float) -> Unit:  # noqa: N802
        return cls(percent=p)

    def resolve(self, total: int) -> int:
        if self.lines is not None:
            return min(self.lines, total)
        return min(math.floor(total * (self.percent or 0.0)), total)


class VSplit(Renderable):
    """Left and right halves with an optional vertical divider.

    ``left_active`` highlights the upper half of the divider when True and
    the lower half when False; None draws it plain.
    """

    def __init__(
        self,
        left: Renderable,
        right: Renderable,
        left_active: bool | None,
        left_size: Unit,
        draw_div: bool = True,
    ) -> None:
        self.left = left
        self.right = right
        self.left_active = left_active
        self.left_size = left_size
        self.draw_div = draw_div

    def name(self) -> str:
        return f"({self.left.name()} | {self.right.name()})"

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        left_w = self.left_size.resolve(width)
        self.left.render(target, left_w, height, x_off, y_off)

        comp = 0
        if self.draw_div and left_w < width:
            for i in range(height):
                lit = (self.left_active is True and i < height // 2) or (
                    self.left_active is False and i > height // 2
                )
                glyph = f"{FG_CYAN}│{FG_RESET}" if lit else "│"
                target.append(goto(x_off + left_w, y_off + i) + glyph)
            comp = 1

        right_w = max(0, width - left_w - comp)
        self.right.render(target, right_w, height, x_off + left_w + comp, y_off)


class HSplit(Renderable):
    """Top and bottom halves with an optional horizontal divider.

    ``top_active`` highlights the left half of the divider when True and the
    right half when False; None draws it plain.
    """

    def __init__(
        self,
        top: Renderable,
        bot: Renderable,
        top_active: bool | None,
        top_size: Unit,
        draw_div: bool = True,
    ) -> None:
        self.top = top
        self.bot = bot
        self.top_active = top_active
        self.top_size = top_size
        self.draw_div = draw_div

    def name(self) -> str:
        return f"({self.top.name()} ╏ {self.bot.name()})"

    def _divider(self, width: int) -> str:
        half = width // 2
        if self.top_active is True:
            return FG_CYAN + "─" * half + FG_RESET + "─" * (width - half)
        if self.top_active is False:
            return "─" * half + FG_CYAN + "─" * (width - half) + FG_RESET
        return "─" * width

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        top_h = self.top_size.resolve(height)
        self.top.render(target, width, top_h, x_off, y_off)

        comp = 0
        if self.draw_div and top_h < height:
            target.append(goto(x_off, y_off + top_h) + self._divider(width))
            comp = 1

        self.bot.render(target, width, max(0, height - top_h - comp), x_off, y_off + top_h + comp)


def render_tab_header(
    target: RenderTarget, names: list[str], active: int, width: int, x_off: int, y_off: int
) -> None:
    """Draw tab names centred in equal cells, padded with rules; the active one cyan."""
    n = len(names)
    if n == 0 or width <= 0:
        return
    sec_len = width // n
    spare = max(0, width - sum(display_width(name) for name in names))
    target.append(goto(x_off, y_off))
    for i, name in enumerate(names):
        pad = max(0, sec_len - display_width(name)) // 2
        lead = min(pad + 1, spare)
        spare -= lead
        colour_on = FG_CYAN if i == active else ""
        target.append(colour_on + "─" * lead)
        Text(name, do_goto=False).render(target, sec_len, 1, x_off + i * sec_len + pad + 1, y_off)
        if i + 1 == n:
            trail = spare
        else:
            trail = min(pad + 1, spare)
        spare -= trail
        target.append("─" * trail + (FG_RESET if i == active else ""))


class Tabs(Component):
    """A strip of components of which one, the active tab, is shown and focused."""

    def __init__(self, tabs: list[Component], active: int = 0) -> None:
        if not tabs:
            raise ValueError("Tabs needs at least one component")
        self.tabs = tabs
        self.active = min(active, len(tabs) - 1)

    @property
    def active_tab(self) -> Component:
        return self.tabs[self.active]

    def name(self) -> str:
        return "tabs: " + " | ".join(t.name() for t in self.tabs)

    def init(self, ctx: Any) -> None:
        for tab in self.tabs:
            tab.init(ctx)

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        if height <= 0:
            return
        render_tab_header(target, [t.name() for t in self.tabs], self.active, width, x_off, y_off)
        self.active_tab.render(target, width, height - 1, x_off, y_off + 1)

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        res = self.active_tab.input(ctx, key, width, height - 1)
        if res.is_close:
            if len(self.tabs) == 1:
                return InputResult.close()
            del self.tabs[self.active]
            if self.active >= len(self.tabs):
                self.active = len(self.tabs) - 1
            return InputResult.rerender()
        if res.is_replace:
            self.tabs[self.active] = res.node
            return InputResult.rerender()
        if res.is_unconsumed:
            if res.key == keys.Key.char("h") or res.key == keys.LEFT:
                if self.active > 0:
                    self.active -= 1
                    return InputResult.rerender()
            elif res.key == keys.Key.char("l") or res.key == keys.RIGHT:
                if self.active + 1 < len(self.tabs):
                    self.active += 1
                    return InputResult.rerender()
        return res

    def rpc(self, ctx: Any, msg: ServerMessage) -> bool:
        return self.active_tab.rpc(ctx, msg)


class Overlay(Component):
    """A bordered box of fixed size centred over another component.

    The overlay owns the component below it; when the top component closes,
    ownership of the lower one is handed back through ``replace_with``.
    """

    def __init__(
        self,
        top: Component,
        below: Component,
        dimensions: tuple[int, int],
        box_color: str | None = None,
        title: str | None = None,
    ) -> None:
        if dimensions[0] <= 0 or dimensions[1] <= 0:
            raise ValueError(f"overlay dimensions must be positive, got {dimensions}")
        self.top = top
        self.below: Slot[Component] = Slot(below)
        self.dimensions = dimensions
        self.box_color = box_color
        self.title = title

    def name(self) -> str:
        return f"{self.top.name()} over {self.below.peek().name()}"

    def _top_border(self, box_w: int) -> str:
        if self.title is None:
            return "─" * box_w
        delim = max(0, box_w - display_width(self.title))
        left = delim // 2
        return "─" * left + self.title + "─" * (delim - left)

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        self.below.peek().render(target, width, height, x_off, y_off)

        box_w, box_h = self.dimensions
        x = x_off + max(0, width // 2 - (box_w // 2 + 1))
        y = y_off + max(0, height // 2 - (box_h // 2 + 1))
        if self.box_color is not None:
            start, end = self.box_color, FG_RESET
        else:
            start, end = FG_BLACK + FG_RESET, ""

        target.append(f"{goto(x, y)}{start}┌{self._top_border(box_w)}┐{end}")
        for i in range(1, box_h + 1):
            # Blank the interior so the lower layer does not show through
            target.append(f"{goto(x, y + i)}{start}│{end}{' ' * box_w}{start}│{end}")
        target.append(f"{goto(x, y + box_h + 1)}{start}└{'─' * box_w}┘{end}")

        self.top.render(target, box_w, box_h, x + 1, y + 1)

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        res = self.top.input(ctx, key, width, height)
        if res.is_close:
            return InputResult.replace_with(self.below.take())
        return res

    def rpc(self, ctx: Any, msg: ServerMessage) -> bool:
        top = self.top.rpc(ctx, msg)
        below = self.below.peek().rpc(ctx, msg)
        return top or below


DISMISS_KEYS = (keys.ESC, keys.DELETE, keys.BACKSPACE, keys.Key.char("q"))


class ErrorOverlay(Overlay):
    """A red message box over another component.

    A dismiss key hands the lower component back. Every other key goes to
    the lower component as if the overlay were not there; when that key
    makes the lower component replace itself, the error goes with it.
    """

    def __init__(self, message: str, below: Component, title: str | None = None) -> None:
        width = max(display_width(message), display_width(title or "")) + 2
        super().__init__(
            top=_ErrorText(message),
            below=below,
            dimensions=(width, 1),
            box_color=FG_RED,
            title=title,
        )
        self.message = message

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        if key in DISMISS_KEYS:
            return InputResult.replace_with(self.below.take())
        return self.below.peek().input(ctx, key, width, height)


class _ErrorText(Component):
    def __init__(self, message: str) -> None:
        self.text = Text(message)

    def name(self) -> str:
        return "error"

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        self.text.render(target, width, height, x_off, y_off)
