"""Shared constants for the models layer.

Defines the event kinds the client reasons about, kind-range helpers used
by the deduplication key, and the default relay URL lists. Placing them
here avoids circular dependencies between the models, nips and core layers.

See Also:
    [Event.deduplication_key()][nostrdk.models.event.Event.deduplication_key]:
        Uses [is_parameterized_replaceable][nostrdk.models.constants.is_parameterized_replaceable]
        to decide between coordinate and id identity.
    [nostrdk.core.session][]: Uses [EventKind][nostrdk.models.constants.EventKind]
        for the mute-list bootstrap fetch.
"""

from __future__ import annotations

from enum import IntEnum


class EventKind(IntEnum):
    """Well-known Nostr event kinds used by the client.

    Attributes:
        SET_METADATA: Kind 0 -- user profile metadata (NIP-01).
        TEXT_NOTE: Kind 1 -- short text note (NIP-01).
        CONTACTS: Kind 3 -- contact list (NIP-02).
        MUTE_LIST: Kind 10000 -- unstructured mute list (NIP-51).
        RELAY_LIST: Kind 10002 -- relay list metadata (NIP-65).
        CATEGORIZED_PEOPLE_LIST: Kind 30000 -- follow sets, including the
            legacy ``d=mute`` categorized mute list (NIP-51).
    """

    SET_METADATA = 0
    TEXT_NOTE = 1
    CONTACTS = 3
    MUTE_LIST = 10_000
    RELAY_LIST = 10_002
    CATEGORIZED_PEOPLE_LIST = 30_000


EVENT_KIND_MAX = 65_535

REPLACEABLE_RANGE = range(10_000, 20_000)
EPHEMERAL_RANGE = range(20_000, 30_000)
PARAMETERIZED_REPLACEABLE_RANGE = range(30_000, 40_000)

# Relays used to discover NIP-65 lists when the outbox model is enabled
DEFAULT_OUTBOX_RELAYS: tuple[str, ...] = (
    "wss://purplepag.es",
    "wss://relay.snort.social",
)

DEFAULT_BLACKLISTED_RELAYS: tuple[str, ...] = ("wss://brb.io",)


def is_replaceable(kind: int) -> bool:
    """Return True for kinds where only the latest event per author is kept."""
    return kind in (0, 3) or kind in REPLACEABLE_RANGE


def is_ephemeral(kind: int) -> bool:
    """Return True for kinds relays are not expected to store."""
    return kind in EPHEMERAL_RANGE


def is_parameterized_replaceable(kind: int) -> bool:
    """Return True for addressable kinds identified by ``(kind, pubkey, d)``."""
    return kind in PARAMETERIZED_REPLACEABLE_RANGE
