"""Leaf widgets: static text and single-line input fields."""

from __future__ import annotations

from axon.tui.text import (
    NO_UNDERLINE,
    UNDERLINE,
    AlignX,
    AlignY,
    goto,
    graphemes,
    wrap,
    x_offsets,
    y_offset,
)


class Text:
    """A string laid out inside the rectangle it is rendered into.

    With ``do_goto`` false the text is written at the current cursor
    position instead, which lets callers splice it into a line they are
    already writing.
    """

    def __init__(
        self,
        content: str,
        align_x: AlignX = AlignX.LEFT,
        align_y: AlignY = AlignY.TOP,
        do_goto: bool = True,
    ) -> None:
        self.content = content
        self.align_x = align_x
        self.align_y = align_y
        self.do_goto = do_goto

    def name(self) -> str:
        return "text"

    def render(self, target: list[str], width: int, height: int, x_off: int, y_off: int) -> None:
        lines = wrap(self.content, width, height)
        if not lines:
            return
        x = x_off + x_offsets(self.align_x, [self.content], width)[0]
        y = y_off + y_offset(self.align_y, len(lines), height)
        for i, line in enumerate(lines):
            if self.do_goto:
                target.append(goto(x, y + i))
            target.append(line)


class Input:
    """Single-line editor over grapheme clusters.

    ``pos`` is 1-based: 1 is before the first grapheme, ``len + 1`` after
    the last one.
    """

    def __init__(self, content: str = "", pos: int | None = None) -> None:
        if pos is not None and pos < 1:
            raise ValueError(f"cursor position must be >= 1, got {pos}")
        self._graphemes = graphemes(content)
        self.pos = pos if pos is not None else len(self._graphemes) + 1

    @property
    def content(self) -> str:
        return "".join(self._graphemes)

    def __len__(self) -> int:
        return len(self._graphemes)

    def clear(self) -> None:
        self._graphemes = []
        self.pos = 1

    def home(self) -> None:
        self.pos = 1

    def end(self) -> None:
        self.pos = len(self._graphemes) + 1

    def cursor_left(self) -> None:
        if self.pos > 1:
            self.pos -= 1

    def cursor_right(self) -> None:
        if self.pos <= len(self._graphemes):
            self.pos += 1

    def push(self, c: str) -> None:
        """Insert ``c`` before the cursor and move past it."""
        # Re-segment so combining marks join the grapheme before them
        before = "".join(self._graphemes[: self.pos - 1]) + c
        after = "".join(self._graphemes[self.pos - 1 :])
        self._graphemes = graphemes(before + after)
        self.pos = len(graphemes(before)) + 1

    def backspace(self) -> None:
        if self.pos > 1:
            del self._graphemes[self.pos - 2]
            self.pos -= 1

    def delete(self) -> None:
        if self.pos <= len(self._graphemes):
            del self._graphemes[self.pos - 1]

    def _visible(self) -> list[str]:
        return self._graphemes

    def format_active(self) -> str:
        """Content with the grapheme under the cursor underlined."""
        shown = self._visible()
        if self.pos > len(shown):
            return "".join(shown) + UNDERLINE + " " + NO_UNDERLINE
        return (
            "".join(shown[: self.pos - 1])
            + UNDERLINE
            + shown[self.pos - 1]
            + NO_UNDERLINE
            + "".join(shown[self.pos :])
        )

    def format_inactive(self) -> str:
        return "".join(self._visible())


class PasswordInput(Input):
    """Input that shows a mask character in place of every grapheme."""

    MASK = "*"

    def _visible(self) -> list[str]:
        return [self.MASK] * len(self._graphemes)
