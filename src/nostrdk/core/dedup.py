"""
Canonical-copy selection for events sharing a deduplication key.

When the same logical event arrives from several relays (or several
revisions of a parameterized replaceable event arrive),
[dedup_event()][nostrdk.core.dedup.dedup_event] picks the copy to keep:

1. A copy this client published beats one it did not.
2. Otherwise the copy seen on more relays wins.
3. Then the newer ``created_at``.
4. Then the lexicographically smaller id.
5. A full tie keeps ``existing``.

The winner's ``on_relays`` becomes the union of both copies, so seen-on
attribution does not depend on arrival order.

See Also:
    [Session.fetch_events()][nostrdk.core.session.Session.fetch_events]:
        Applies this to every ``event`` and ``event:dup`` emission.
"""

from __future__ import annotations

from nostrdk.models.event import Event


def _preferred(existing: Event, incoming: Event) -> Event:
    if existing.published != incoming.published:
        return existing if existing.published else incoming
    if len(existing.on_relays) != len(incoming.on_relays):
        return existing if len(existing.on_relays) > len(incoming.on_relays) else incoming
    if existing.created_at != incoming.created_at:
        return existing if existing.created_at > incoming.created_at else incoming
    if existing.id != incoming.id:
        return existing if existing.id < incoming.id else incoming
    return existing


def dedup_event(existing: Event, incoming: Event) -> Event:
    """Return the canonical copy of two events with the same deduplication key.

    The returned event is one of the two arguments; its ``on_relays`` is
    updated in place to the union of both.
    """
    winner = _preferred(existing, incoming)
    winner.on_relays |= existing.on_relays | incoming.on_relays
    return winner
