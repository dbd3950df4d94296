"""Orchestration layer: relays, pools, subscriptions and the session.

Sits above ``nostrdk.models``, ``nostrdk.nips`` and ``nostrdk.utils`` in the
diamond DAG and is the only layer with network I/O.

Attributes:
    Session: Explicit client context. Bootstraps the active user and
        creates subscriptions. See [Session][nostrdk.core.session.Session].
    RelayPool: URL-keyed relay collection with explicit and temporary
        members. See [RelayPool][nostrdk.core.pool.RelayPool].
    RelaySet: Immutable relay subset for one operation.
    Subscription: Deduplicated event stream with EOSE aggregation.
    RelayConnection: Abstract link to one relay;
        [WebSocketRelayConnection][nostrdk.core.transport.WebSocketRelayConnection]
        is the aiohttp implementation.
    Emitter: Per-instance signal dispatch used by all of the above.
    Logger: Structured logger supporting key=value and JSON output modes.
    MetricsServer: Prometheus ``/metrics`` HTTP endpoint.

Examples:
    ```python
    from nostrdk.core import Session, SessionConfig

    async with Session(SessionConfig(explicit_relay_urls=["wss://nos.lol"])) as session:
        events = await session.fetch_events({"kinds": [1], "limit": 10})
    ```

See Also:
    [nostrdk.models][nostrdk.models]: Value types consumed by this layer.
    [nostrdk.nips][nostrdk.nips]: NIP helpers used by the session.
"""

from .cache import CacheAdapter
from .dedup import dedup_event
from .emitter import Emitter, OneShot
from .exceptions import (
    ConfigurationError,
    ConnectivityError,
    InvalidFilterError,
    NostrdkError,
    ProtocolError,
    RelayConnectionError,
    RelayTimeoutError,
    SignerRequiredError,
)
from .logger import Logger, StructuredFormatter, format_kv_pairs
from .metrics import (
    EVENTS_RECEIVED,
    FETCH_DURATION_SECONDS,
    RELAYS_CONNECTED,
    SUBSCRIPTIONS_ACTIVE,
    MetricsConfig,
    MetricsServer,
)
from .outbox import OutboxTracker
from .pool import PoolConfig, RelayPool
from .relay import RelayConnection, RelayStatus
from .relay_set import RelaySet
from .session import Session, SessionConfig, SessionState
from .signer import KeysSigner, Signer
from .subscription import Subscription, SubscriptionOptions, SubscriptionState
from .transport import WebSocketRelayConnection
from .user import User
from .yaml import load_yaml


__all__ = [
    "EVENTS_RECEIVED",
    "FETCH_DURATION_SECONDS",
    "RELAYS_CONNECTED",
    "SUBSCRIPTIONS_ACTIVE",
    "CacheAdapter",
    "ConfigurationError",
    "ConnectivityError",
    "Emitter",
    "InvalidFilterError",
    "KeysSigner",
    "Logger",
    "MetricsConfig",
    "MetricsServer",
    "NostrdkError",
    "OneShot",
    "OutboxTracker",
    "PoolConfig",
    "ProtocolError",
    "RelayConnection",
    "RelayConnectionError",
    "RelayPool",
    "RelaySet",
    "RelayStatus",
    "RelayTimeoutError",
    "Session",
    "SessionConfig",
    "SessionState",
    "Signer",
    "SignerRequiredError",
    "StructuredFormatter",
    "Subscription",
    "SubscriptionOptions",
    "SubscriptionState",
    "User",
    "WebSocketRelayConnection",
    "dedup_event",
    "format_kv_pairs",
    "load_yaml",
]
