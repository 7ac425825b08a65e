"""Full-screen terminal: alternate screen, frame output and key events.

Key decoding is blessed's keystroke resolver; this module only maps the
resolved keystrokes onto ``Key``.
"""

from __future__ import annotations

from contextlib import ExitStack
from typing import Callable, Iterator

from blessed import Terminal as BlessedTerminal
from blessed.keyboard import Keystroke

from axon.logging import get_structlog
from axon.tui import keys
from axon.tui.keys import Key, KeyKind

log = get_structlog()

# How long a key read blocks before re-checking whether to keep going
READ_TIMEOUT = 0.2

_NAMED = {
    "KEY_UP": keys.UP,
    "KEY_DOWN": keys.DOWN,
    "KEY_LEFT": keys.LEFT,
    "KEY_RIGHT": keys.RIGHT,
    "KEY_HOME": keys.HOME,
    "KEY_END": keys.END,
    "KEY_PGUP": keys.PAGE_UP,
    "KEY_PGDOWN": keys.PAGE_DOWN,
    "KEY_PPAGE": keys.PAGE_UP,
    "KEY_NPAGE": keys.PAGE_DOWN,
    "KEY_DELETE": keys.DELETE,
    "KEY_INSERT": keys.INSERT,
    "KEY_BACKSPACE": keys.BACKSPACE,
    "KEY_ENTER": keys.ENTER,
    "KEY_TAB": keys.TAB,
    "KEY_ESCAPE": keys.ESC,
}
_NAMED.update({f"KEY_F{n}": Key(KeyKind.F, str(n)) for n in range(1, 13)})

# Newer blessed releases name modified keys, e.g. KEY_CTRL_Q or KEY_ALT_X
_MODIFIED = {"KEY_CTRL_": Key.ctrl, "KEY_ALT_": Key.alt}


def to_key(ks: Keystroke) -> Key | None:
    """Map a blessed keystroke onto a ``Key``; None for keys axon has no use for."""
    name = ks.name
    if name:
        if name in _NAMED:
            return _NAMED[name]
        for prefix, make in _MODIFIED.items():
            rest = name[len(prefix) :]
            if name.startswith(prefix) and len(rest) == 1:
                return make(rest.lower())
        log.debug("unmapped_key", name=name)
        return None

    text = str(ks)
    if len(text) == 2 and text[0] == "\x1b":
        return Key.alt(text[1])
    if len(text) != 1:
        log.debug("unmapped_key", sequence=text.encode("unicode_escape").decode())
        return None
    if text == "\x7f":
        return keys.BACKSPACE
    if text in ("\r", "\n"):
        return keys.ENTER
    if text == "\t":
        return keys.TAB
    if text == "\x1b":
        return keys.ESC
    if ord(text) < 0x20:
        return Key.ctrl(chr(ord(text) + 0x60))
    return Key.char(text)


class Terminal:
    """Context manager that owns the controlling terminal while the UI runs.

    Entering switches to the alternate screen in raw mode with the cursor
    hidden; leaving restores all three, also when the UI dies with an
    exception.
    """

    def __init__(self, term: BlessedTerminal | None = None) -> None:
        self.term = BlessedTerminal() if term is None else term
        self._stack: ExitStack | None = None

    def __enter__(self) -> Terminal:
        if not self.term.is_a_tty:
            raise OSError("stdin and stdout must be a terminal")
        stack = ExitStack()
        stack.enter_context(self.term.fullscreen())
        # raw, not cbreak: Ctrl-q and Ctrl-s must reach us instead of flow control
        stack.enter_context(self.term.raw())
        stack.enter_context(self.term.hidden_cursor())
        self._stack = stack
        return self

    def __exit__(self, *exc) -> None:
        try:
            self.write(self.term.normal)
        finally:
            if self._stack is not None:
                self._stack.close()
                self._stack = None

    def size(self) -> tuple[int, int]:
        """Current (columns, rows)."""
        return self.term.width, self.term.height

    def write(self, frame: str) -> None:
        stream = self.term.stream
        stream.write(frame)
        stream.flush()

    def read_keys(self) -> list[Key]:
        """Keys pressed within ``READ_TIMEOUT``; empty if none arrived."""
        ks = self.term.inkey(timeout=READ_TIMEOUT)
        if not ks:
            return []
        out = [ks]
        # Drain whatever else is already buffered without blocking
        while True:
            ks = self.term.inkey(timeout=0)
            if not ks:
                break
            out.append(ks)
        return [key for key in map(to_key, out) if key is not None]

    def keys(self, running: Callable[[], bool]) -> Iterator[Key]:
        """Yield keys for as long as ``running()`` holds."""
        while running():
            yield from self.read_keys()
