"""Component tree: the node interface, input results, owning slots and decorators.

Every node renders into a shared frame (a list of strings that is joined and
written once per repaint), handles keys and handles decoded server messages.
Keys and messages are delivered together with the session context, an object
with ``send(msg)`` and ``next_serial()`` (the ``ConnectionManager``).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import TYPE_CHECKING, Any, Callable, Generic, TypeVar

if TYPE_CHECKING:
    from axon.protocol import ServerMessage
    from axon.tui.keys import Key

RenderTarget = list[str]


class ResultKind(Enum):
    RERENDER = "rerender"
    CLOSE = "close"
    REPLACE_WITH = "replace_with"
    # The key was not used by any component below the current one
    UNCONSUMED = "unconsumed"


@dataclass(frozen=True)
class InputResult:
    """What a component wants its parent to do after handling a key."""

    kind: ResultKind
    node: Component | None = None
    key: Key | None = None

    @classmethod
    def rerender(cls) -> InputResult:
        return _RERENDER

    @classmethod
    def close(cls) -> InputResult:
        return _CLOSE

    @classmethod
    def replace_with(cls, node: Component) -> InputResult:
        return cls(ResultKind.REPLACE_WITH, node=node)

    @classmethod
    def unconsumed(cls, key: Key) -> InputResult:
        return cls(ResultKind.UNCONSUMED, key=key)

    @property
    def is_rerender(self) -> bool:
        return self.kind is ResultKind.RERENDER

    @property
    def is_close(self) -> bool:
        return self.kind is ResultKind.CLOSE

    @property
    def is_replace(self) -> bool:
        return self.kind is ResultKind.REPLACE_WITH

    @property
    def is_unconsumed(self) -> bool:
        return self.kind is ResultKind.UNCONSUMED


_RERENDER = InputResult(ResultKind.RERENDER)
_CLOSE = InputResult(ResultKind.CLOSE)


class Renderable:
    """Anything that can draw itself into a rectangle of the frame."""

    def name(self) -> str:
        return "unnamed"

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        raise NotImplementedError


class Component(Renderable):
    """A node of the view tree.

    Subclasses override what they need; the defaults leave keys unconsumed
    and never ask for a repaint on messages.
    """

    def init(self, ctx: Any) -> None:
        """Called once when the node is first shown on a live session."""

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        return InputResult.unconsumed(key)

    def rpc(self, ctx: Any, msg: ServerMessage) -> bool:
        return False


T = TypeVar("T", bound=Component)


class Slot(Generic[T]):
    """Exclusive owner of at most one node.

    Moving a node out of a tree and back in later is an explicit
    ``take()``/``put()`` pair, so a node never has two owners.
    """

    def __init__(self, node: T | None = None) -> None:
        self._node = node

    def __bool__(self) -> bool:
        return self._node is not None

    def peek(self) -> T:
        if self._node is None:
            raise LookupError("slot is empty")
        return self._node

    def take(self) -> T:
        node = self.peek()
        self._node = None
        return node

    def put(self, node: T) -> None:
        if self._node is not None:
            raise LookupError("slot is already occupied")
        self._node = node

    def replace(self, node: T) -> T | None:
        old, self._node = self._node, node
        return old


# ─────────────────────────────────────────────────────────────────────────────
# Adapters and decorators
# ─────────────────────────────────────────────────────────────────────────────


class RenderFn(Renderable):
    """Renderable backed by a plain function of (target, w, h, x, y)."""

    def __init__(self, fn: Callable[[RenderTarget, int, int, int, int], None]) -> None:
        self._fn = fn

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        self._fn(target, width, height, x_off, y_off)


class RenderStateFn(Renderable):
    """Like ``RenderFn`` but the function also receives a mutable state value."""

    def __init__(self, fn: Callable[..., None], state: Any) -> None:
        self._fn = fn
        self.state = state

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        self._fn(target, width, height, x_off, y_off, self.state)


class CloseOnInput(Component):
    """Closes on any key in ``triggers``, or on any key at all when empty.

    Messages are forwarded to the wrapped content when it handles them.
    """

    def __init__(self, content: Renderable, triggers: tuple[Key, ...] = ()) -> None:
        self.content = content
        self.triggers = triggers

    def name(self) -> str:
        return self.content.name()

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        self.content.render(target, width, height, x_off, y_off)

    def input(self, ctx: Any, key: Key, width: int, height: int) -> InputResult:
        if not self.triggers or key in self.triggers:
            return InputResult.close()
        return InputResult.rerender()

    def rpc(self, ctx: Any, msg: ServerMessage) -> bool:
        if isinstance(self.content, Component):
            return self.content.rpc(ctx, msg)
        return False


class IgnoreRpc(Component):
    """Renders its content and drops every message; keys are left unconsumed."""

    def __init__(self, content: Renderable) -> None:
        self.content = content

    def name(self) -> str:
        return self.content.name()

    def render(self, target: RenderTarget, width: int, height: int, x_off: int, y_off: int) -> None:
        self.content.render(target, width, height, x_off, y_off)
