"""Abstract key events produced by the terminal and consumed by components."""

from dataclasses import dataclass
from enum import Enum


class KeyKind(Enum):
    CHAR = "char"
    CTRL = "ctrl"
    ALT = "alt"
    F = "f"
    UP = "up"
    DOWN = "down"
    LEFT = "left"
    RIGHT = "right"
    HOME = "home"
    END = "end"
    PAGE_UP = "page_up"
    PAGE_DOWN = "page_down"
    BACKSPACE = "backspace"
    DELETE = "delete"
    INSERT = "insert"
    ESC = "esc"


@dataclass(frozen=True)
class Key:
    """A decoded key press. ``value`` holds the character for CHAR/CTRL/ALT keys."""

    kind: KeyKind
    value: str = ""

    @classmethod
    def char(cls, c: str) -> "Key":
        return cls(KeyKind.CHAR, c)

    @classmethod
    def ctrl(cls, c: str) -> "Key":
        return cls(KeyKind.CTRL, c)

    @classmethod
    def alt(cls, c: str) -> "Key":
        return cls(KeyKind.ALT, c)

    def __str__(self) -> str:
        if self.value:
            return f"{self.kind.value}({self.value!r})"
        return self.kind.value


UP = Key(KeyKind.UP)
DOWN = Key(KeyKind.DOWN)
LEFT = Key(KeyKind.LEFT)
RIGHT = Key(KeyKind.RIGHT)
HOME = Key(KeyKind.HOME)
END = Key(KeyKind.END)
PAGE_UP = Key(KeyKind.PAGE_UP)
PAGE_DOWN = Key(KeyKind.PAGE_DOWN)
BACKSPACE = Key(KeyKind.BACKSPACE)
DELETE = Key(KeyKind.DELETE)
INSERT = Key(KeyKind.INSERT)
ESC = Key(KeyKind.ESC)
ENTER = Key.char("\n")
TAB = Key.char("\t")
