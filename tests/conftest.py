"""
Pytest configuration and shared fixtures for nostrdk tests.

Provides:
- ``make_event``: factory for valid events with deterministic ids
- ``FakeRelay``: in-memory RelayConnection that answers REQs from stored events
- ``FakeNetwork``: URL -> stored events registry used as a pool relay factory
- ``session`` / ``network`` fixtures wired together
"""

from __future__ import annotations

import asyncio
import hashlib
import itertools
import json
import logging
from typing import Any
from unittest.mock import MagicMock

import pytest

from nostrdk.core.exceptions import RelayConnectionError
from nostrdk.core.relay import RelayConnection
from nostrdk.core.session import Session, SessionConfig
from nostrdk.models.event import Event
from nostrdk.models.filter import Filter


PUBKEY_A = "a" * 64
PUBKEY_B = "b" * 64
PUBKEY_C = "c" * 64

RELAY_1 = "wss://relay-one.example.com"
RELAY_2 = "wss://relay-two.example.com"
RELAY_3 = "wss://relay-three.example.com"

_ids = itertools.count(1)


# ============================================================================
# Logging Configuration
# ============================================================================


@pytest.fixture(scope="session", autouse=True)
def setup_logging() -> None:
    """Configure logging for tests."""
    logging.basicConfig(level=logging.DEBUG)


# ============================================================================
# Events
# ============================================================================


def event_id(seed: Any) -> str:
    return hashlib.sha256(str(seed).encode()).hexdigest()


def make_event(
    *,
    kind: int = 1,
    pubkey: str = PUBKEY_A,
    created_at: int = 1_700_000_000,
    tags: list[list[str]] | None = None,
    content: str = "",
    id: str | None = None,  # noqa: A002
    relay: str | None = None,
    published: bool = False,
) -> Event:
    """Build a valid event. Ids are unique unless passed explicitly."""
    event = Event(
        id=id or event_id(next(_ids)),
        pubkey=pubkey,
        created_at=created_at,
        kind=kind,
        tags=tags or [],
        content=content,
        sig="0" * 128,
        relay=relay,
    )
    event.published = published
    return event


def copy_event(event: Event, *, relay: str | None = None) -> Event:
    """Same protocol event as delivered by another relay."""
    return Event.from_dict(event.to_dict(), relay=relay)


# ============================================================================
# Relays
# ============================================================================


class FakeRelay(RelayConnection):
    """In-memory relay answering each REQ with its stored events, then EOSE.

    Attributes:
        stored: Events served to matching REQs.
        sent: Every frame the client sent, decoded.
        auto_eose: Send EOSE after the stored events.
        fail: Make ``connect()`` raise ``RelayConnectionError``.
        connect_delay: Seconds ``connect()`` takes.
    """

    def __init__(
        self,
        url: str,
        events: list[Event] | None = None,
        *,
        auto_eose: bool = True,
        fail: bool = False,
        connect_delay: float = 0.0,
    ) -> None:
        super().__init__(url, verify_signatures=False)
        self.stored: list[Event] = list(events or [])
        self.sent: list[list[Any]] = []
        self.auto_eose = auto_eose
        self.fail = fail
        self.connect_delay = connect_delay
        self.open_calls = 0

    async def _open(self) -> None:
        self.open_calls += 1
        if self.connect_delay:
            await asyncio.sleep(self.connect_delay)
        if self.fail:
            raise RelayConnectionError(f"refused: {self.url}")

    async def _close(self) -> None:
        return None

    async def _send(self, message: str) -> None:
        frame = json.loads(message)
        self.sent.append(frame)
        if frame[0] != "REQ":
            return
        subscription_id = frame[1]
        filters = [Filter.from_dict(f) for f in frame[2:]]
        for event in self.stored:
            if any(f.matches(event) for f in filters):
                self.receive(json.dumps(["EVENT", subscription_id, event.to_dict()]))
        if self.auto_eose:
            self.receive(json.dumps(["EOSE", subscription_id]))

    def go_online(self) -> None:
        """Mark connected without a handshake."""
        self._mark_connected()

    def requests(self) -> list[list[Any]]:
        return [frame for frame in self.sent if frame[0] == "REQ"]


class FakeNetwork:
    """Registry of stored events per relay URL, usable as a pool relay factory."""

    def __init__(self) -> None:
        self.events: dict[str, list[Event]] = {}
        self.failing: set[str] = set()
        self.created: dict[str, list[FakeRelay]] = {}

    def publish(self, url: str, *events: Event) -> None:
        self.events.setdefault(url, []).extend(events)

    def __call__(self, url: str) -> FakeRelay:
        relay = FakeRelay(url, self.events.get(url, []), fail=url in self.failing)
        self.created.setdefault(url, []).append(relay)
        return relay


def fake_subscription(sub_id: str = "sub1") -> MagicMock:
    """Stand-in subscription for relay-level tests."""
    subscription = MagicMock()
    subscription.id = sub_id
    subscription.filters = [Filter(kinds=[1])]
    return subscription


async def settle(rounds: int = 5) -> None:
    """Let queued tasks and callbacks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture
def session_config() -> SessionConfig:
    return SessionConfig(
        explicit_relay_urls=[RELAY_1, RELAY_2, RELAY_3],
        auto_connect_user_relays=False,
        auto_fetch_user_mutelist=False,
    )


@pytest.fixture
async def session(session_config: SessionConfig, network: FakeNetwork) -> Session:
    session = Session(session_config, relay_factory=network)
    yield session
    await session.close()
