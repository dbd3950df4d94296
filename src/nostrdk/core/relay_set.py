"""
Immutable relay subsets.

A [RelaySet][nostrdk.core.relay_set.RelaySet] names the relays one
subscription or fetch talks to. It never changes after construction;
[corrected()][nostrdk.core.relay_set.RelaySet.corrected] and the other
derivations return new instances.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING

from nostrdk.models.relay_url import normalize_relay_url


if TYPE_CHECKING:
    from .pool import RelayPool
    from .relay import RelayConnection


class RelaySet:
    """Frozen set of relay connections.

    Two sets are equal when they contain the same relay URLs.

    Examples:
        ```python
        relay_set = RelaySet.from_relay_urls(["wss://nos.lol"], session.pool)
        event = await session.fetch_event(note_id, relay_set=relay_set)
        ```
    """

    __slots__ = ("_relays",)

    def __init__(self, relays: Iterable[RelayConnection] = ()) -> None:
        by_url: dict[str, RelayConnection] = {}
        for relay in relays:
            by_url.setdefault(relay.url, relay)
        self._relays: frozenset[RelayConnection] = frozenset(by_url.values())

    @classmethod
    def from_relay_urls(cls, urls: Iterable[str], pool: RelayPool) -> RelaySet:
        """Build a set from URLs, reusing the pool's connection for tracked URLs.

        Untracked URLs get a fresh connection from the pool's relay factory;
        it is not added to the pool.

        Raises:
            ValueError: If a URL is not a valid relay URL.
        """
        relays = []
        for url in urls:
            normalized = normalize_relay_url(url)
            relays.append(pool.relays.get(normalized) or pool.create_relay(normalized))
        return cls(relays)

    def corrected(self, pool: RelayPool) -> RelaySet:
        """Return a new set keeping only relays the pool tracks, as the pool's instances."""
        tracked = pool.relays
        return RelaySet(tracked[relay.url] for relay in self._relays if relay.url in tracked)

    @property
    def relays(self) -> frozenset[RelayConnection]:
        return self._relays

    @property
    def urls(self) -> tuple[str, ...]:
        """Sorted relay URLs."""
        return tuple(sorted(relay.url for relay in self._relays))

    def __iter__(self) -> Iterator[RelayConnection]:
        return iter(self._relays)

    def __len__(self) -> int:
        return len(self._relays)

    def __bool__(self) -> bool:
        return bool(self._relays)

    def __contains__(self, item: object) -> bool:
        if isinstance(item, str):
            return any(relay.url == item for relay in self._relays)
        return item in self._relays

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, RelaySet):
            return NotImplemented
        return self.urls == other.urls

    def __hash__(self) -> int:
        return hash(self.urls)

    def __repr__(self) -> str:
        return f"RelaySet({list(self.urls)!r})"
