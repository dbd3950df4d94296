"""Pure value types with zero I/O: events, filters, relay URLs and kinds.

The models layer is the foundation of the diamond DAG. It has no
dependencies on any other nostrdk package. Values arriving from relays are
validated in ``__post_init__`` so invalid instances never escape the
constructor.

Attributes:
    Event: NIP-01 event with client-side provenance (delivering relay,
        seen-on relays, published marker) and a deduplication key.
    Filter: Immutable NIP-01 filter with JSON round-tripping and local
        matching.
    EventKind: Well-known event kinds used by the session bootstrap.
    normalize_relay_url: Canonical relay URL used as the pool key.

See Also:
    [nostrdk.nips][]: NIP-19 pointers, NIP-51 lists, NIP-65 relay lists.
    [nostrdk.core][]: Pool, subscriptions and the session built on these types.
"""

from .constants import (
    DEFAULT_BLACKLISTED_RELAYS,
    DEFAULT_OUTBOX_RELAYS,
    EVENT_KIND_MAX,
    EventKind,
    is_ephemeral,
    is_parameterized_replaceable,
    is_replaceable,
)
from .event import Event
from .filter import Filter, normalize_filters
from .relay_url import normalize_relay_url, try_normalize_relay_url


__all__ = [
    "DEFAULT_BLACKLISTED_RELAYS",
    "DEFAULT_OUTBOX_RELAYS",
    "EVENT_KIND_MAX",
    "Event",
    "EventKind",
    "Filter",
    "is_ephemeral",
    "is_parameterized_replaceable",
    "is_replaceable",
    "normalize_filters",
    "normalize_relay_url",
    "try_normalize_relay_url",
]
