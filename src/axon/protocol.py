"""Synapse RPC messages and resources as seen by the client.

Inbound frames are JSON objects tagged by ``type``. Resource updates inside
``UPDATE_RESOURCES`` are either full snapshots or narrow deltas; a delta is
recognised by its exact set of fields (see ``DELTA_FIELDS``), everything else
is decoded as a snapshot of the kind named by its ``type``.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass, field, fields
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Union
from urllib.parse import urlsplit

MAJOR_VERSION = 0
MINOR_VERSION = 1


class ProtocolError(ValueError):
    """Raised when an inbound frame is not a message the client understands."""


class ResourceKind(str, Enum):
    SERVER = "server"
    TORRENT = "torrent"
    TRACKER = "tracker"


class Status(str, Enum):
    PENDING = "pending"
    PAUSED = "paused"
    LEECHING = "leeching"
    IDLE = "idle"
    SEEDING = "seeding"
    HASHING = "hashing"
    MAGNET = "magnet"
    ERROR = "error"


class Operation(str, Enum):
    EQ = "=="
    NEQ = "!="
    LT = "<"
    LTE = "<="
    GT = ">"
    GTE = ">="
    LIKE = "like"
    ILIKE = "ilike"
    HAS = "has"


@dataclass(frozen=True)
class Criterion:
    """One (field, operator, value) condition of a filter subscription."""

    field: str
    op: Operation
    value: str | float

    def to_json(self) -> dict[str, Any]:
        return {"field": self.field, "op": self.op.value, "value": self.value}


# ─────────────────────────────────────────────────────────────────────────────
# Field conversion
# ─────────────────────────────────────────────────────────────────────────────

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)
_FRACTION = re.compile(r"(\.\d{6})\d+")


def parse_time(value: str | None) -> datetime | None:
    """Parse an RFC 3339 timestamp; naive values are taken as UTC."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ProtocolError(f"Expected timestamp string, got {value!r}")
    text = _FRACTION.sub(r"\1", value.strip())
    if text.endswith(("Z", "z")):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as e:
        raise ProtocolError(f"Invalid timestamp {value!r}") from e
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _parse_status(value: str) -> Status:
    try:
        return Status(value)
    except ValueError as e:
        raise ProtocolError(f"Unknown torrent status {value!r}") from e


_CONVERTERS = {
    "created": parse_time,
    "modified": parse_time,
    "started": parse_time,
    "last_report": parse_time,
    "status": _parse_status,
}


def _convert(name: str, value: Any) -> Any:
    converter = _CONVERTERS.get(name)
    return converter(value) if converter is not None else value


def _from_json(cls: type, data: dict[str, Any]) -> Any:
    if "id" not in data:
        raise ProtocolError(f"{cls.__name__} without id")
    known = {f.name for f in fields(cls)}
    kwargs = {k: _convert(k, v) for k, v in data.items() if k in known}
    return cls(**kwargs)


# ─────────────────────────────────────────────────────────────────────────────
# Resources
# ─────────────────────────────────────────────────────────────────────────────


@dataclass
class Torrent:
    id: str
    name: str | None = None
    path: str = ""
    created: datetime = _EPOCH
    modified: datetime = _EPOCH
    status: Status = Status.PENDING
    error: str | None = None
    priority: int = 3
    progress: float = 0.0
    availability: float = 0.0
    sequential: bool = False
    rate_up: int = 0
    rate_down: int = 0
    # None follows the global throttle, -1 is unlimited
    throttle_up: int | None = None
    throttle_down: int | None = None
    transferred_up: int = 0
    transferred_down: int = 0
    peers: int = 0
    trackers: int = 0
    tracker_urls: list[str] = field(default_factory=list)
    size: int | None = None
    pieces: int | None = None
    piece_size: int | None = None
    files: int | None = None
    private: bool = False

    @property
    def display_name(self) -> str:
        """Name, falling back to the download path while metadata is missing."""
        return self.name if self.name is not None else self.path

    def apply(self, update: ResourceUpdate) -> None:
        """Overwrite the fields carried by a delta."""
        for name, value in update.fields.items():
            setattr(self, name, value)


@dataclass
class Tracker:
    id: str
    torrent_id: str = ""
    url: str = ""
    last_report: datetime | None = None
    error: str | None = None

    @property
    def host(self) -> str:
        """Host part of the announce URL, as listed in ``Torrent.tracker_urls``."""
        return urlsplit(self.url).hostname or self.url


@dataclass
class Server:
    id: str = ""
    download_token: str = ""
    rate_up: int = 0
    rate_down: int = 0
    throttle_up: int | None = None
    throttle_down: int | None = None
    transferred_up: int = 0
    transferred_down: int = 0
    ses_transferred_up: int = 0
    ses_transferred_down: int = 0
    free_space: int = 0
    started: datetime = _EPOCH

    def apply(self, update: ResourceUpdate) -> None:
        """Overwrite the fields carried by a delta."""
        for name, value in update.fields.items():
            setattr(self, name, value)


Resource = Union[Server, Torrent, Tracker]

_RESOURCE_TYPES: dict[ResourceKind, type] = {
    ResourceKind.SERVER: Server,
    ResourceKind.TORRENT: Torrent,
    ResourceKind.TRACKER: Tracker,
}

# Delta variant -> the exact fields it carries besides ``id`` and ``type``
DELTA_FIELDS: dict[str, frozenset[str]] = {
    "throttle": frozenset({"throttle_up", "throttle_down"}),
    "rate": frozenset({"rate_up", "rate_down"}),
    "server_transfer": frozenset(
        {
            "rate_up",
            "rate_down",
            "transferred_up",
            "transferred_down",
            "ses_transferred_up",
            "ses_transferred_down",
        }
    ),
    "server_space": frozenset({"free_space"}),
    "server_token": frozenset({"download_token"}),
    "tracker_status": frozenset({"last_report", "error"}),
    "torrent_status": frozenset({"error", "status"}),
    "torrent_transfer": frozenset(
        {"rate_up", "rate_down", "transferred_up", "transferred_down", "progress"}
    ),
    "torrent_peers": frozenset({"peers", "availability"}),
    "torrent_picker": frozenset({"sequential"}),
    "torrent_priority": frozenset({"priority"}),
    "torrent_path": frozenset({"path"}),
    "torrent_pieces": frozenset({"size", "pieces", "piece_size", "files"}),
}


@dataclass(frozen=True)
class ResourceUpdate:
    """A delta touching only some fields of a known resource."""

    variant: str
    id: str
    kind: ResourceKind
    fields: dict[str, Any]


def decode_resource(data: dict[str, Any]) -> Resource | ResourceUpdate | None:
    """Decode one element of ``UPDATE_RESOURCES``.

    Returns None for resource kinds the client does not mirror.
    """
    if not isinstance(data, dict):
        raise ProtocolError(f"Expected resource object, got {type(data).__name__}")
    try:
        kind = ResourceKind(data.get("type"))
    except ValueError:
        return None

    keys = set(data) - {"id", "type"}
    for variant, carried in DELTA_FIELDS.items():
        if keys == carried:
            if "id" not in data:
                raise ProtocolError(f"{variant} update without id")
            return ResourceUpdate(
                variant=variant,
                id=data["id"],
                kind=kind,
                fields={k: _convert(k, data[k]) for k in carried},
            )
    return _from_json(_RESOURCE_TYPES[kind], data)


# ─────────────────────────────────────────────────────────────────────────────
# Messages
# ─────────────────────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class RpcVersion:
    major: int
    minor: int

    def __str__(self) -> str:
        return f"{self.major}.{self.minor}"


@dataclass(frozen=True)
class UpdateResources:
    resources: list[Resource | ResourceUpdate]
    serial: int | None = None


@dataclass(frozen=True)
class ResourcesRemoved:
    ids: list[str]
    serial: int | None = None


@dataclass(frozen=True)
class ResourcesExtant:
    ids: list[str]
    serial: int | None = None


@dataclass(frozen=True)
class ServerError:
    reason: str
    serial: int | None = None


ServerMessage = Union[RpcVersion, UpdateResources, ResourcesRemoved, ResourcesExtant, ServerError]


def _ids(data: dict[str, Any]) -> list[str]:
    ids = data.get("ids")
    if not isinstance(ids, list):
        raise ProtocolError("Expected an ids list")
    return [str(i) for i in ids]


def decode_server_message(text: str | bytes) -> ServerMessage:
    """Decode one inbound text frame.

    Raises:
        ProtocolError: If the frame is not valid JSON or not a known message.
    """
    try:
        data = json.loads(text)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ProtocolError(f"Invalid JSON: {e}") from e
    if not isinstance(data, dict):
        raise ProtocolError("Expected a JSON object")

    msg_type = data.get("type")
    serial = data.get("serial")
    try:
        if msg_type == "RPC_VERSION":
            return RpcVersion(major=int(data["major"]), minor=int(data["minor"]))
        if msg_type == "UPDATE_RESOURCES":
            decoded = (decode_resource(r) for r in data.get("resources", []))
            return UpdateResources(
                resources=[r for r in decoded if r is not None],
                serial=serial,
            )
        if msg_type == "RESOURCES_REMOVED":
            return ResourcesRemoved(ids=_ids(data), serial=serial)
        if msg_type == "RESOURCES_EXTANT":
            return ResourcesExtant(ids=_ids(data), serial=serial)
        if msg_type == "ERROR":
            return ServerError(reason=str(data.get("reason", "unknown error")), serial=serial)
    except (KeyError, TypeError) as e:
        raise ProtocolError(f"Malformed {msg_type} message: {e}") from e
    raise ProtocolError(f"Unknown message type {msg_type!r}")


def is_compatible(version: RpcVersion) -> bool:
    """Whether a server speaking ``version`` can be used by this client."""
    if version.major != MAJOR_VERSION:
        return False
    # Before 1.0 every minor release may break the protocol
    return MAJOR_VERSION != 0 or version.minor == MINOR_VERSION


def filter_subscribe(serial: int, kind: ResourceKind, criteria: list[Criterion]) -> dict[str, Any]:
    return {
        "type": "FILTER_SUBSCRIBE",
        "serial": serial,
        "kind": kind.value,
        "criteria": [c.to_json() for c in criteria],
    }


def subscribe(serial: int, ids: list[str]) -> dict[str, Any]:
    return {"type": "SUBSCRIBE", "serial": serial, "ids": list(ids)}


def unsubscribe(serial: int, ids: list[str]) -> dict[str, Any]:
    return {"type": "UNSUBSCRIBE", "serial": serial, "ids": list(ids)}
