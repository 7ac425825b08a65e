"""Shared test fixtures for axon."""

import json
from typing import Any, Callable

import pytest
from websocket import ABNF

from axon.protocol import Torrent, Tracker


class FakeContext:
    """Session stand-in that records every message a component sends."""

    def __init__(self) -> None:
        self.sent: list[dict[str, Any]] = []
        self._serial = 0

    def send(self, msg: dict[str, Any]) -> None:
        self.sent.append(msg)

    def next_serial(self) -> int:
        serial = self._serial
        self._serial += 1
        return serial


@pytest.fixture
def ctx() -> FakeContext:
    """A fresh recording session context."""
    return FakeContext()


@pytest.fixture
def make_torrent() -> Callable[..., Torrent]:
    """Factory for torrents with a name and an id."""

    def _make(id: str = "t1", name: str | None = "torrent", **kwargs: Any) -> Torrent:
        return Torrent(id=id, name=name, **kwargs)

    return _make


@pytest.fixture
def make_tracker() -> Callable[..., Tracker]:
    """Factory for trackers; the host defaults to tracker.example.org."""

    def _make(
        id: str,
        torrent_id: str = "t1",
        url: str = "udp://tracker.example.org:1337/announce",
        error: str | None = None,
    ) -> Tracker:
        return Tracker(id=id, torrent_id=torrent_id, url=url, error=error)

    return _make


def frame(payload: dict | str | bytes, opcode: int = ABNF.OPCODE_TEXT, fin: bool = True) -> ABNF:
    """Build a received websocket frame."""
    if isinstance(payload, dict):
        payload = json.dumps(payload)
    if isinstance(payload, str):
        payload = payload.encode()
    return ABNF(fin=1 if fin else 0, opcode=opcode, data=payload)


@pytest.fixture
def make_frame() -> Callable[..., ABNF]:
    """Factory for received websocket frames."""
    return frame
