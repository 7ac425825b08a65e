"""Local mirror of the server's resources.

Torrents are kept in natural, case-insensitive order of their display name
inside a ``ScrollList`` that also carries the viewport window and selection.
Trackers are grouped by host: the first tracker seen for a host becomes the
group's base record, later ones are kept as (id, torrent id, error) records
ordered by id. Deltas are applied to every copy of a resource the mirror
holds, which includes the torrents pinned for the details view.
"""

from __future__ import annotations

import copy
from bisect import bisect_left
from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, TypeVar

from natsort import natsort_keygen

from axon.logging import get_structlog
from axon.protocol import (
    ResourceKind,
    ResourcesRemoved,
    ResourceUpdate,
    RpcVersion,
    Server,
    ServerMessage,
    Torrent,
    Tracker,
    UpdateResources,
)

log = get_structlog()

T = TypeVar("T")

_natural = natsort_keygen()


def torrent_sort_key(torrent: Torrent) -> tuple:
    """Natural, case-insensitive ordering key of a torrent's display name."""
    return _natural(torrent.display_name.lower())


# ─────────────────────────────────────────────────────────────────────────────
# Scroll lists
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class ScrollList(Generic[T]):
    """A list together with its visible window and selected index.

    ``height`` is the window height seen at the last render. ``dirty`` is set
    when a mutation lands inside or above the window, and cleared by
    ``clamp``.
    """

    items: list[T] = field(default_factory=list)
    lower: int = 0
    selected: int = 0
    height: int = 0
    dirty: bool = False

    def __len__(self) -> int:
        return len(self.items)

    def current(self) -> T | None:
        if not self.items:
            return None
        return self.items[min(self.selected, len(self.items) - 1)]

    def touches_window(self, idx: int) -> bool:
        return idx < self.lower + self.height

    def clamp(self, height: int | None = None) -> None:
        """Restore ``lower <= selected < lower + height`` and ``selected < len``.

        A selection that fell below the window is pulled back to its last
        row, the same way a shrinking terminal tightens it.
        """
        if height is not None:
            self.height = height
        self.dirty = False
        n = len(self.items)
        if n == 0:
            self.lower = self.selected = 0
            return
        self.selected = max(0, min(self.selected, n - 1))
        self.lower = max(0, min(self.lower, self.selected))
        if self.height > 0 and self.selected >= self.lower + self.height:
            self.selected = self.lower + self.height - 1

    # Navigation, ``height`` being the number of visible rows.
    # Each returns False when the key has nothing to do.

    def home(self) -> bool:
        self.lower = self.selected = 0
        return True

    def end(self, height: int) -> bool:
        n = len(self.items)
        self.lower = max(0, n - height)
        self.selected = max(0, n - 1)
        return True

    def page_up(self, height: int) -> bool:
        if self.selected < height:
            self.lower = self.selected = 0
        else:
            self.lower = 0 if self.lower < height else self.lower - height
            self.selected -= height
        return True

    def page_down(self, height: int) -> bool:
        n = len(self.items)
        if self.selected + height >= n:
            return self.end(height)
        if self.lower + 2 * height >= n:
            self.lower = max(0, n - height)
        else:
            self.lower += height
        self.selected += height
        return True

    def up(self) -> bool:
        if self.selected == 0:
            return False
        if self.lower == self.selected:
            self.lower -= 1
        self.selected -= 1
        return True

    def down(self, height: int) -> bool:
        if self.selected + 1 >= len(self.items):
            return False
        if self.lower + max(0, height - 1) == self.selected:
            self.lower += 1
        self.selected += 1
        return True


def remove_ids(lst: ScrollList[T], ids: set[str], key: Callable[[T], str]) -> bool:
    """Drop every item whose ``key`` is in ``ids`` in a single pass.

    The selection follows its item when rows above it disappear. When the
    selected row itself is removed the selection moves to the row above,
    unless it already is the first row. Returns True if anything was removed.
    """
    kept: list[T] = []
    below_sel = 0
    below_lower = 0
    for i, item in enumerate(lst.items):
        if key(item) not in ids:
            kept.append(item)
            continue
        if i < lst.selected or (i == lst.selected and lst.selected != 0):
            below_sel += 1
        if i < lst.lower:
            below_lower += 1
        if lst.touches_window(i):
            lst.dirty = True
    if len(kept) == len(lst.items):
        return False
    lst.items = kept
    lst.selected = max(0, lst.selected - below_sel)
    lst.lower = max(0, lst.lower - below_lower)
    lst.clamp()
    return True


def insert_torrent(lst: ScrollList[Torrent], torrent: Torrent) -> int:
    """Insert ``torrent`` at its sorted position and return that position.

    A snapshot for an id already in the list replaces the old entry.
    """
    for i, existing in enumerate(lst.items):
        if existing.id == torrent.id:
            del lst.items[i]
            break
    idx = bisect_left(lst.items, torrent_sort_key(torrent), key=torrent_sort_key)
    lst.items.insert(idx, torrent)
    if lst.touches_window(idx):
        lst.dirty = True
    return idx


# ─────────────────────────────────────────────────────────────────────────────
# Tracker groups
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class TrackerRef:
    """A tracker sharing its host with the base record of a group."""

    id: str
    torrent_id: str
    error: str | None = None


@dataclass
class TrackerGroup:
    base: Tracker
    others: list[TrackerRef] = field(default_factory=list)

    @property
    def host(self) -> str:
        return self.base.host

    def __len__(self) -> int:
        return 1 + len(self.others)

    def has_error(self, torrent_id: str | None = None) -> bool:
        """Whether the base has an error, or one of ``torrent_id``'s trackers does."""
        if self.base.error is not None:
            return True
        return any(o.torrent_id == torrent_id and o.error is not None for o in self.others)

    def _other_index(self, tracker_id: str) -> int | None:
        ids = [o.id for o in self.others]
        idx = bisect_left(ids, tracker_id)
        if idx < len(ids) and ids[idx] == tracker_id:
            return idx
        return None


def insert_tracker(groups: list[TrackerGroup], tracker: Tracker) -> None:
    """Add ``tracker`` to the group of its host, creating the group in host order."""
    host = tracker.host
    for i, group in enumerate(groups):
        if host == group.host:
            if tracker.id == group.base.id:
                group.base = tracker
                return
            ref = TrackerRef(tracker.id, tracker.torrent_id, tracker.error)
            existing = group._other_index(tracker.id)
            if existing is not None:
                group.others[existing] = ref
            else:
                group.others.insert(bisect_left([o.id for o in group.others], tracker.id), ref)
            return
        if host < group.host:
            groups.insert(i, TrackerGroup(tracker))
            return
    groups.append(TrackerGroup(tracker))


def remove_trackers(groups: list[TrackerGroup], ids: set[str]) -> bool:
    """Remove trackers by id, promoting the last other record when a base goes."""
    changed = False
    kept: list[TrackerGroup] = []
    for group in groups:
        before = len(group.others)
        group.others = [o for o in group.others if o.id not in ids]
        changed |= len(group.others) != before
        if group.base.id in ids:
            changed = True
            if not group.others:
                continue
            last = group.others.pop()
            group.base.id = last.id
            group.base.torrent_id = last.torrent_id
            group.base.error = last.error
        kept.append(group)
    groups[:] = kept
    return changed


def apply_tracker_status(groups: list[TrackerGroup], update: ResourceUpdate) -> bool:
    """Apply a tracker status delta to the record it names, if any."""
    last_report = update.fields.get("last_report")
    error = update.fields.get("error")
    for group in groups:
        if update.id == group.base.id:
            group.base.last_report = last_report
            group.base.error = error
            return True
        idx = group._other_index(update.id)
        if idx is not None:
            group.base.last_report = last_report
            group.others[idx].error = error
            return True
    return False


# ─────────────────────────────────────────────────────────────────────────────
# Mirror
# ─────────────────────────────────────────────────────────────────────────────


class ResourceMirror:
    """Everything the main panel shows, kept in sync with server messages."""

    def __init__(self) -> None:
        self.server = Server()
        self.server_version = "?.?"
        self.torrents: ScrollList[Torrent] = ScrollList()
        # Pinned deep copies, unique by id; only ``selected`` is used
        self.details: ScrollList[Torrent] = ScrollList()
        self.trackers: list[TrackerGroup] = []

    def pin(self, torrent: Torrent) -> int:
        """Pin a copy of ``torrent`` (or select its existing pin) and return its index."""
        for i, pinned in enumerate(self.details.items):
            if pinned.id == torrent.id:
                self.details.selected = i
                return i
        self.details.items.append(copy.deepcopy(torrent))
        self.details.selected = len(self.details.items) - 1
        return self.details.selected

    def unpin_selected(self) -> None:
        if not self.details.items:
            return
        del self.details.items[self.details.selected]
        # Only the last pin moves the selection
        self.details.clamp()

    def trackers_of(self, torrent: Torrent | None) -> Iterable[TrackerGroup]:
        if torrent is None:
            return []
        return [g for g in self.trackers if g.host in torrent.tracker_urls]

    def apply(self, msg: ServerMessage) -> bool:
        """Fold one server message into the mirror; True if anything may have changed."""
        if isinstance(msg, RpcVersion):
            self.server_version = str(msg)
            return True
        if isinstance(msg, ResourcesRemoved):
            self.remove(set(msg.ids))
            return True
        if isinstance(msg, UpdateResources):
            for res in msg.resources:
                self._apply_one(res)
            return True
        return False

    def remove(self, ids: set[str]) -> None:
        remove_ids(self.torrents, ids, key=lambda t: t.id)
        remove_ids(self.details, ids, key=lambda t: t.id)
        remove_trackers(self.trackers, ids)

    def _apply_one(self, res: Server | Torrent | Tracker | ResourceUpdate) -> None:
        if isinstance(res, Server):
            self.server = res
        elif isinstance(res, Torrent):
            insert_torrent(self.torrents, res)
            self._refresh_pin(res)
        elif isinstance(res, Tracker):
            insert_tracker(self.trackers, res)
        elif res.kind is ResourceKind.SERVER:
            self.server.apply(res)
        elif res.kind is ResourceKind.TRACKER:
            if not apply_tracker_status(self.trackers, res):
                log.debug("unknown_resource_update", id=res.id, variant=res.variant)
        else:
            self._apply_torrent_update(res)

    def _refresh_pin(self, torrent: Torrent) -> None:
        for i, pinned in enumerate(self.details.items):
            if pinned.id == torrent.id:
                self.details.items[i] = copy.deepcopy(torrent)
                return

    def _apply_torrent_update(self, update: ResourceUpdate) -> None:
        for pinned in self.details.items:
            if pinned.id == update.id:
                pinned.apply(update)
                break
        for i, torrent in enumerate(self.torrents.items):
            if torrent.id == update.id:
                old_key = torrent_sort_key(torrent)
                torrent.apply(update)
                if torrent_sort_key(torrent) != old_key:
                    # An unnamed torrent is listed by path; keep the order
                    del self.torrents.items[i]
                    insert_torrent(self.torrents, torrent)
                return
        log.debug("unknown_resource_update", id=update.id, variant=update.variant)
