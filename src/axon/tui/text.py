"""Width- and style-aware text layout.

Strings may embed ANSI escape sequences. Escapes are zero-width and are never
split; visible text is measured per grapheme cluster in terminal columns.
When a string has to be wrapped, every emitted line closes the styles that
are still open at its end and the next line reopens them, so each line can
be written on its own.
"""

from __future__ import annotations

from enum import Enum
from typing import Iterator

import regex
from wcwidth import wcswidth

# ─────────────────────────────────────────────────────────────────────────────
# Escape sequences
# ─────────────────────────────────────────────────────────────────────────────

FG_BLACK = "\x1b[38;5;0m"
FG_RED = "\x1b[38;5;1m"
FG_CYAN = "\x1b[38;5;6m"
FG_RESET = "\x1b[39m"
BG_RED = "\x1b[48;5;1m"
BG_RESET = "\x1b[49m"
RESET = "\x1b[m"
UNDERLINE = "\x1b[4m"
NO_UNDERLINE = "\x1b[24m"
CLEAR_ALL = "\x1b[2J"

WRAP_MARKER = "-"
ELLIPSIS = "…"


def goto(x: int, y: int) -> str:
    """Absolute cursor position, 1-based column ``x`` and row ``y``."""
    return f"\x1b[{y};{x}H"


# CSI sequences, two-byte escapes, then grapheme clusters
_TOKEN = regex.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b[^\[]|\X")
_GRAPHEME = regex.compile(r"\X")
_SGR = regex.compile(r"\x1b\[([0-9;]*)m")


def tokens(s: str) -> Iterator[tuple[str, bool]]:
    """Split ``s`` into (token, is_escape) pairs."""
    for m in _TOKEN.finditer(s):
        tok = m.group()
        yield tok, tok.startswith("\x1b")


def graphemes(s: str) -> list[str]:
    """User-perceived characters of ``s``."""
    return _GRAPHEME.findall(s)


def grapheme_width(g: str) -> int:
    """Terminal columns of one grapheme; control characters take none."""
    return max(wcswidth(g), 0)


def display_width(s: str) -> int:
    """Columns ``s`` occupies once escape sequences are interpreted."""
    return sum(grapheme_width(tok) for tok, is_esc in tokens(s) if not is_esc)


def strip_styles(s: str) -> str:
    """``s`` without escape sequences."""
    return "".join(tok for tok, is_esc in tokens(s) if not is_esc)


# ─────────────────────────────────────────────────────────────────────────────
# Style tracking
# ─────────────────────────────────────────────────────────────────────────────

# Attribute -> the code that switches it off again
_ATTR_OFF = {"1": "22", "2": "22", "3": "23", "4": "24", "5": "25", "7": "27", "8": "28", "9": "29"}
_FG_CODES = {str(n) for n in (*range(30, 38), *range(90, 98))}
_BG_CODES = {str(n) for n in (*range(40, 48), *range(100, 108))}


def _is_fg(params: str) -> bool:
    return params.startswith("38;") or params in _FG_CODES


def _is_bg(params: str) -> bool:
    return params.startswith("48;") or params in _BG_CODES


class StyleStack:
    """Styles opened and not yet closed at the current position of a string."""

    def __init__(self) -> None:
        self._open: list[tuple[str, str]] = []

    def __bool__(self) -> bool:
        return bool(self._open)

    def _drop(self, pred) -> None:
        self._open = [(esc, p) for esc, p in self._open if not pred(p)]

    def apply(self, esc: str) -> None:
        """Track the effect of one escape sequence."""
        m = _SGR.fullmatch(esc)
        if m is None:
            return
        params = m.group(1)
        if params in ("", "0"):
            self._open.clear()
        elif params == "39":
            self._drop(_is_fg)
        elif params == "49":
            self._drop(_is_bg)
        elif params in _ATTR_OFF.values():
            self._drop(lambda p: _ATTR_OFF.get(p) == params)
        else:
            if _is_fg(params):
                self._drop(_is_fg)
            elif _is_bg(params):
                self._drop(_is_bg)
            self._open.append((esc, params))

    def close(self) -> str:
        """Escapes ending every open style, innermost first."""
        out = []
        for _, params in reversed(self._open):
            if _is_fg(params):
                out.append(FG_RESET)
            elif _is_bg(params):
                out.append(BG_RESET)
            elif params in _ATTR_OFF:
                out.append(f"\x1b[{_ATTR_OFF[params]}m")
            else:
                out.append(RESET)
        return "".join(out)

    def reopen(self) -> str:
        """Escapes restoring every open style in their original order."""
        return "".join(esc for esc, _ in self._open)


# ─────────────────────────────────────────────────────────────────────────────
# Wrapping
# ─────────────────────────────────────────────────────────────────────────────


def _chunks(content: str, width: int) -> list[str]:
    # One column of every chunk is kept free for the wrap marker
    styles = StyleStack()
    chunks = [""]
    col = 0
    for tok, is_esc in tokens(content):
        if is_esc:
            styles.apply(tok)
            chunks[-1] += tok
            continue
        w = grapheme_width(tok)
        if col > 0 and col + w >= width:
            chunks[-1] += styles.close()
            chunks.append(styles.reopen())
            col = 0
        chunks[-1] += tok
        col += w

    merged: list[str] = []
    for chunk in chunks:
        if merged and display_width(chunk) == 0:
            merged[-1] += chunk
        else:
            merged.append(chunk)
    if len(merged) > 1 and display_width(merged[0]) == 0:
        merged[1] = merged[0] + merged[1]
        del merged[0]
    return merged


def wrap(content: str, width: int, height: int) -> list[str]:
    """Lay ``content`` out in a ``width`` x ``height`` box.

    Content that fits is returned as a single line. Longer content is cut at
    column boundaries; every line but the last ends in ``WRAP_MARKER``, and
    when the box runs out of rows the last visible line ends in ``ELLIPSIS``.
    A final piece of at most one column is appended to the line before it
    instead of taking a row of its own.
    """
    if width <= 1 or height <= 0:
        return []
    if display_width(content) <= width:
        return [content]

    chunks = _chunks(content, width)
    lines: list[str] = []
    for i, chunk in enumerate(chunks):
        if i + 1 == len(chunks):
            lines.append(chunk)
            break
        following = chunks[i + 1]
        if i + 2 == len(chunks) and display_width(following) <= 1:
            lines.append(chunk + following)
            break
        if len(lines) + 1 >= height:
            lines.append(chunk + ELLIPSIS)
            break
        lines.append(chunk + WRAP_MARKER)
    return lines


# ─────────────────────────────────────────────────────────────────────────────
# Alignment
# ─────────────────────────────────────────────────────────────────────────────


class AlignX(Enum):
    LEFT = "left"
    RIGHT = "right"
    CENTER = "center"
    # Center the longest line, left-align the rest against it
    CENTER_LONGEST_LEFT = "center_longest_left"


class AlignY(Enum):
    TOP = "top"
    CENTER = "center"


def x_offsets(align: AlignX, lines: list[str], width: int) -> list[int]:
    """Column offset of every line within ``width``."""
    lens = [display_width(line) for line in lines]
    if align is AlignX.LEFT:
        return [0] * len(lines)
    if align is AlignX.RIGHT:
        return [max(0, width - n) for n in lens]
    if align is AlignX.CENTER:
        return [max(0, width // 2 - n // 2) for n in lens]
    longest = max(lens, default=0)
    return [max(0, width // 2 - longest // 2)] * len(lines)


def y_offset(align: AlignY, n_lines: int, height: int) -> int:
    """Row offset of a block of ``n_lines`` within ``height``."""
    if align is AlignY.TOP:
        return 0
    return max(0, height // 2 - n_lines // 2)
