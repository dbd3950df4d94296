"""
Live, deduplicated event stream over a relay set.

A [Subscription][nostrdk.core.subscription.Subscription] sends its filters
to every relay of its [RelaySet][nostrdk.core.relay_set.RelaySet] and merges
what comes back:

* ``event`` is emitted for the first copy of each deduplication key and
  ``event:dup`` for every later copy. Both carry the raw incoming event and
  the delivering relay.
* ``eose`` is emitted exactly once, after every relay of the set has
  signaled end of stored events. An empty relay set reaches it on start.
* With ``close_on_eose`` the subscription unregisters from its relays right
  after ``eose`` and emits ``close``.

Lifecycle: ``created -> started -> eose -> closed``.

See Also:
    [Session.subscribe()][nostrdk.core.session.Session.subscribe]: The
        factory callers use.
    [Event.deduplication_key()][nostrdk.models.event.Event.deduplication_key]:
        Key used to classify first copies and duplicates.
"""

from __future__ import annotations

import uuid
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, ConfigDict, Field

from nostrdk.models.event import Event
from nostrdk.models.filter import Filter, normalize_filters

from .emitter import Emitter
from .logger import Logger
from .metrics import EVENTS_RECEIVED, SUBSCRIPTIONS_ACTIVE
from .relay_set import RelaySet


if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from .relay import RelayConnection
    from .session import Session


class SubscriptionOptions(BaseModel):
    """Per-subscription options."""

    model_config = ConfigDict(frozen=True)

    close_on_eose: bool = Field(
        default=False, description="Unregister from relays once every relay sent EOSE"
    )
    subscription_id: str | None = Field(
        default=None, min_length=1, max_length=64, description="Explicit wire subscription id"
    )
    group_key: str | None = Field(default=None, description="Label attached to log lines")


class SubscriptionState(StrEnum):
    CREATED = "created"
    STARTED = "started"
    EOSE = "eose"
    CLOSED = "closed"


class Subscription(Emitter):
    """Filters plus a relay set, with duplicate detection and EOSE aggregation.

    Signals:
        event (event, relay): First copy of a deduplication key.
        event:dup (event, relay): Later copy of an already seen key.
        eose (subscription): Every relay of the set signaled EOSE.
        close (subscription): The subscription stopped.

    Args:
        session: Owning session. Supplies the pool-wide default relay set.
        filters: One filter, a filter mapping, or a sequence of either.
        options: Subscription options.
        relay_set: Relays to query. None means every relay of the session
            pool at start time.

    Raises:
        ValueError: If no filter is given or a filter is malformed.
        TypeError: If a filter field has the wrong type.
    """

    def __init__(
        self,
        session: Session,
        filters: Filter | Mapping[str, Any] | Iterable[Any],
        options: SubscriptionOptions | None = None,
        relay_set: RelaySet | None = None,
    ) -> None:
        super().__init__()
        self.filters: list[Filter] = normalize_filters(filters)
        self.options = options or SubscriptionOptions()
        self.id = self.options.subscription_id or uuid.uuid4().hex[:16]
        self.relay_set = relay_set
        self.state = SubscriptionState.CREATED
        self._session = session
        self._seen: dict[str, Event] = {}
        self._eose_relays: set[str] = set()
        self._metrics_enabled = session.metrics_enabled

        context = {"sub_id": self.id}
        if self.options.group_key:
            context["group"] = self.options.group_key
        self._logger = Logger("subscription").bind(**context)

    # -------------------------------------------------------------------------
    # Introspection
    # -------------------------------------------------------------------------

    @property
    def session(self) -> Session:
        return self._session

    @property
    def eose_received_from(self) -> frozenset[str]:
        return frozenset(self._eose_relays)

    @property
    def seen_keys(self) -> frozenset[str]:
        return frozenset(self._seen)

    def has_authors_filter(self) -> bool:
        return any(f.has_authors() for f in self.filters)

    def authors(self) -> list[str]:
        """Union of the ``authors`` of every filter, in first-seen order."""
        return list(dict.fromkeys(author for f in self.filters for author in f.authors or ()))

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def start(self) -> None:
        """Register with every relay of the set. A no-op once started."""
        if self.state != SubscriptionState.CREATED:
            return
        if self.relay_set is None:
            self.relay_set = RelaySet(self._session.pool.relays.values())
        self.state = SubscriptionState.STARTED
        if self._metrics_enabled:
            SUBSCRIPTIONS_ACTIVE.inc()
        self._logger.debug(
            "subscription_started", relays=len(self.relay_set), filters=len(self.filters)
        )

        if not self.relay_set:
            self._emit_eose()
            return
        for relay in self.relay_set:
            relay.subscribe(self)

    def stop(self) -> None:
        """Unregister from every relay and emit ``close``. A no-op once closed."""
        if self.state == SubscriptionState.CLOSED:
            return
        was_started = self.state != SubscriptionState.CREATED
        self.state = SubscriptionState.CLOSED
        for relay in self.relay_set or ():
            relay.unsubscribe(self)
        if was_started and self._metrics_enabled:
            SUBSCRIPTIONS_ACTIVE.dec()
        self._logger.debug("subscription_closed", events=len(self._seen))
        self.emit("close", self)

    # -------------------------------------------------------------------------
    # Relay callbacks
    # -------------------------------------------------------------------------

    def event_received(self, event: Event, relay: RelayConnection | None = None) -> None:
        """Classify *event* as a first copy or a duplicate and emit accordingly."""
        if self.state == SubscriptionState.CLOSED:
            return
        key = event.deduplication_key()
        if key in self._seen:
            if self._metrics_enabled:
                EVENTS_RECEIVED.labels(outcome="dup").inc()
            self.emit("event:dup", event, relay)
            return

        self._seen[key] = event
        if self._metrics_enabled:
            EVENTS_RECEIVED.labels(outcome="first").inc()
        self.emit("event", event, relay)

    def eose_received(self, relay: RelayConnection) -> None:
        """Record EOSE from *relay*; emits ``eose`` once all relays of the set did."""
        if self.state != SubscriptionState.STARTED or self.relay_set is None:
            return
        if relay.url not in self.relay_set:
            self._logger.debug("eose_from_unknown_relay", relay=relay.url)
            return
        self._eose_relays.add(relay.url)
        if len(self._eose_relays) >= len(self.relay_set):
            self._emit_eose()

    def _emit_eose(self) -> None:
        self.state = SubscriptionState.EOSE
        self._logger.debug(
            "subscription_eose", relays=len(self._eose_relays), events=len(self._seen)
        )
        self.emit("eose", self)
        if self.options.close_on_eose:
            self.stop()

    def __repr__(self) -> str:
        return (
            f"Subscription(id={self.id!r}, state={self.state.value}, "
            f"filters={len(self.filters)})"
        )
