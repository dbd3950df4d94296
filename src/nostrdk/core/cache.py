"""
Cache adapter contract.

The session stores a cache adapter and hands it to callers; the
orchestration core never calls it. Concrete adapters (SQLite, Redis, an
in-memory dict) implement whichever of these methods they support.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable


if TYPE_CHECKING:
    from nostrdk.models.event import Event
    from nostrdk.models.filter import Filter


@runtime_checkable
class CacheAdapter(Protocol):
    """Persistence hook for events seen by a session."""

    async def query(self, filters: list[Filter]) -> list[Event]: ...

    async def set_event(self, event: Event, filters: list[Filter]) -> None: ...
