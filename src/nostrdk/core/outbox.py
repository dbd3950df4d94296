"""
Outbox model: learn where authors write.

[OutboxTracker][nostrdk.core.outbox.OutboxTracker] is told about the
authors of subscriptions and fetches their NIP-65 relay lists (kind 10002)
from the outbox pool in the background. The session reports authors but
never waits on the tracker; callers consult
[relays_for()][nostrdk.core.outbox.OutboxTracker.relays_for] when they want
to route a query to an author's write relays.
"""

from __future__ import annotations

import asyncio
from collections.abc import Iterable
from typing import TYPE_CHECKING

from nostrdk.models.constants import EventKind
from nostrdk.models.filter import Filter
from nostrdk.nips.nip65 import RelayList

from .logger import Logger
from .relay_set import RelaySet


if TYPE_CHECKING:
    from .session import Session


class OutboxTracker:
    """Background cache of authors' write relays.

    Args:
        session: Session whose outbox pool is queried.
        timeout: Seconds to wait for one relay-list fetch; None waits for EOSE.
    """

    def __init__(self, session: Session, *, timeout: float | None = 10.0) -> None:  # noqa: ASYNC109
        self._session = session
        self._timeout = timeout
        self._write_relays: dict[str, tuple[str, ...]] = {}
        self._pending: set[str] = set()
        self._tasks: set[asyncio.Task[None]] = set()
        self._logger = Logger("outbox")

    @property
    def tracked(self) -> frozenset[str]:
        """Authors whose relay list has been looked up."""
        return frozenset(self._write_relays)

    def relays_for(self, pubkey: str) -> tuple[str, ...] | None:
        """Write relays of *pubkey*, ``()`` if it has no list, None if not looked up yet."""
        return self._write_relays.get(pubkey)

    def track_users(self, authors: Iterable[str]) -> asyncio.Task[None] | None:
        """Start looking up the relay lists of authors not known yet.

        Returns:
            The background lookup task, or None if every author is known or
            already being looked up.
        """
        known = self._write_relays.keys() | self._pending
        new = [a for a in dict.fromkeys(authors) if a not in known]
        if not new:
            return None

        self._pending.update(new)
        self._logger.debug("outbox_tracking", authors=len(new))
        task = asyncio.get_running_loop().create_task(self._lookup(new))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _lookup(self, authors: list[str]) -> None:
        pool = self._session.outbox_pool or self._session.pool
        try:
            events = await self._session.fetch_events(
                Filter(kinds=[EventKind.RELAY_LIST], authors=authors),
                relay_set=RelaySet(pool.relays.values()),
                timeout=self._timeout,
            )
        finally:
            self._pending.difference_update(authors)

        newest: dict[str, RelayList] = {}
        for event in sorted(events, key=lambda e: (-e.created_at, e.id)):
            if event.pubkey in authors and event.pubkey not in newest:
                newest[event.pubkey] = RelayList.from_event(event)

        for author in authors:
            relay_list = newest.get(author)
            self._write_relays[author] = relay_list.write_relays if relay_list else ()
        self._logger.debug("outbox_tracked", authors=len(authors), found=len(newest))

    async def close(self) -> None:
        for task in list(self._tasks):
            task.cancel()
        await asyncio.gather(*self._tasks, return_exceptions=True)
