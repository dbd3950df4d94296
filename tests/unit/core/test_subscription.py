"""
Unit tests for core.subscription module.

Tests:
- SubscriptionOptions validation
- event/event:dup classification independent of relay order
- eose aggregation: once, after every relay; immediately for an empty set
- close_on_eose unregistering and emitting close
- Default relay set from the session pool
"""

from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from conftest import (
    PUBKEY_A,
    PUBKEY_B,
    RELAY_1,
    RELAY_2,
    RELAY_3,
    FakeRelay,
    copy_event,
    make_event,
    settle,
)
from nostrdk.core.relay_set import RelaySet
from nostrdk.core.session import Session
from nostrdk.core.subscription import Subscription, SubscriptionOptions, SubscriptionState
from nostrdk.models import Filter


def three_relays() -> list[FakeRelay]:
    return [FakeRelay(RELAY_1), FakeRelay(RELAY_2), FakeRelay(RELAY_3)]


def recorder(subscription: Subscription) -> dict[str, MagicMock]:
    handlers = {signal: MagicMock() for signal in ("event", "event:dup", "eose", "close")}
    for signal, handler in handlers.items():
        subscription.on(signal, handler)
    return handlers


class TestSubscriptionOptions:
    """SubscriptionOptions model."""

    def test_defaults(self):
        options = SubscriptionOptions()
        assert options.close_on_eose is False
        assert options.subscription_id is None
        assert options.group_key is None

    def test_frozen(self):
        with pytest.raises(ValidationError):
            SubscriptionOptions().close_on_eose = True  # type: ignore[misc]

    def test_subscription_id_length(self):
        with pytest.raises(ValidationError):
            SubscriptionOptions(subscription_id="")
        with pytest.raises(ValidationError):
            SubscriptionOptions(subscription_id="x" * 65)


class TestConstruction:
    """Filters, ids and introspection."""

    async def test_filters_normalized(self, session: Session):
        subscription = Subscription(session, {"kinds": [1]})
        assert subscription.filters == [Filter(kinds=[1])]
        assert subscription.state == SubscriptionState.CREATED

    async def test_no_filters_rejected(self, session: Session):
        with pytest.raises(ValueError):
            Subscription(session, [])

    async def test_explicit_id(self, session: Session):
        options = SubscriptionOptions(subscription_id="feed")
        assert Subscription(session, {"kinds": [1]}, options).id == "feed"

    async def test_generated_ids_unique(self, session: Session):
        ids = {Subscription(session, {"kinds": [1]}).id for _ in range(20)}
        assert len(ids) == 20

    async def test_authors_union_in_order(self, session: Session):
        subscription = Subscription(
            session,
            [{"kinds": [1], "authors": [PUBKEY_B, PUBKEY_A]}, {"authors": [PUBKEY_A]}],
        )
        assert subscription.has_authors_filter()
        assert subscription.authors() == [PUBKEY_B, PUBKEY_A]

    async def test_no_authors(self, session: Session):
        subscription = Subscription(session, {"kinds": [1]})
        assert not subscription.has_authors_filter()
        assert subscription.authors() == []


class TestDeduplication:
    """event vs event:dup."""

    async def test_first_copy_then_duplicates(self, session: Session):
        relays = three_relays()
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet(relays))
        handlers = recorder(subscription)
        subscription.start()

        event = make_event()
        for relay in relays:
            subscription.event_received(copy_event(event, relay=relay.url), relay)

        assert handlers["event"].call_count == 1
        assert handlers["event:dup"].call_count == 2
        first, source = handlers["event"].call_args.args
        assert first.relay == RELAY_1
        assert source is relays[0]

    @pytest.mark.parametrize("order", [(0, 1, 2), (2, 1, 0), (1, 2, 0)])
    async def test_classification_independent_of_relay_order(self, session: Session, order):
        relays = three_relays()
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet(relays))
        handlers = recorder(subscription)
        subscription.start()

        event = make_event()
        for index in order:
            subscription.event_received(copy_event(event, relay=relays[index].url), relays[index])

        assert handlers["event"].call_count == 1
        assert handlers["event:dup"].call_count == 2
        assert subscription.seen_keys == {event.id}

    async def test_parameterized_replaceable_keyed_by_coordinate(self, session: Session):
        subscription = Subscription(session, {"kinds": [30_023]}, relay_set=RelaySet())
        handlers = recorder(subscription)
        subscription.state = SubscriptionState.STARTED

        old = make_event(kind=30_023, tags=[["d", "post"]], created_at=1)
        new = make_event(kind=30_023, tags=[["d", "post"]], created_at=2)
        subscription.event_received(old)
        subscription.event_received(new)

        handlers["event"].assert_called_once_with(old, None)
        handlers["event:dup"].assert_called_once_with(new, None)

    async def test_events_after_close_ignored(self, session: Session):
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet(three_relays()))
        handlers = recorder(subscription)
        subscription.start()
        subscription.stop()
        subscription.event_received(make_event())
        handlers["event"].assert_not_called()


class TestEose:
    """EOSE aggregation."""

    async def test_eose_once_after_every_relay(self, session: Session):
        relays = three_relays()
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet(relays))
        handlers = recorder(subscription)
        subscription.start()

        subscription.eose_received(relays[0])
        subscription.eose_received(relays[0])
        subscription.eose_received(relays[1])
        handlers["eose"].assert_not_called()

        subscription.eose_received(relays[2])
        handlers["eose"].assert_called_once_with(subscription)
        assert subscription.state == SubscriptionState.EOSE

        subscription.eose_received(relays[2])
        assert handlers["eose"].call_count == 1

    async def test_eose_from_foreign_relay_ignored(self, session: Session):
        subscription = Subscription(
            session, {"kinds": [1]}, relay_set=RelaySet([FakeRelay(RELAY_1)])
        )
        handlers = recorder(subscription)
        subscription.start()
        subscription.eose_received(FakeRelay(RELAY_2))
        handlers["eose"].assert_not_called()
        assert subscription.eose_received_from == frozenset()

    async def test_empty_relay_set_eose_on_start(self, session: Session):
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet())
        handlers = recorder(subscription)
        subscription.start()
        handlers["eose"].assert_called_once_with(subscription)

    async def test_eose_before_start_ignored(self, session: Session):
        relay = FakeRelay(RELAY_1)
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet([relay]))
        handlers = recorder(subscription)
        subscription.eose_received(relay)
        handlers["eose"].assert_not_called()

    async def test_end_to_end_through_relays(self, session: Session):
        relays = three_relays()
        event = make_event()
        for relay in relays:
            relay.stored.append(event)
            await relay.connect()

        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet(relays))
        handlers = recorder(subscription)
        subscription.start()
        await settle()

        assert handlers["event"].call_count == 1
        assert handlers["event:dup"].call_count == 2
        handlers["eose"].assert_called_once_with(subscription)


class TestLifecycle:
    """start()/stop() and close_on_eose."""

    async def test_start_registers_on_relays(self, session: Session):
        relays = three_relays()
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet(relays))
        subscription.start()
        subscription.start()
        assert subscription.state == SubscriptionState.STARTED
        assert all(subscription.id in relay.subscriptions for relay in relays)

    async def test_default_relay_set_is_session_pool(self, session: Session):
        subscription = Subscription(session, {"kinds": [1]})
        subscription.start()
        assert subscription.relay_set.urls == tuple(sorted(session.pool.relays))

    async def test_stop_unregisters_and_emits_close(self, session: Session):
        relays = three_relays()
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet(relays))
        handlers = recorder(subscription)
        subscription.start()
        subscription.stop()
        subscription.stop()
        handlers["close"].assert_called_once_with(subscription)
        assert all(relay.subscriptions == {} for relay in relays)

    async def test_close_on_eose_sends_close(self, session: Session):
        relay = FakeRelay(RELAY_1)
        await relay.connect()
        subscription = Subscription(
            session,
            {"kinds": [1]},
            SubscriptionOptions(close_on_eose=True),
            RelaySet([relay]),
        )
        handlers = recorder(subscription)
        subscription.start()
        await settle()

        handlers["eose"].assert_called_once_with(subscription)
        handlers["close"].assert_called_once_with(subscription)
        assert subscription.state == SubscriptionState.CLOSED
        assert ["CLOSE", subscription.id] in relay.sent

    async def test_without_close_on_eose_stays_open(self, session: Session):
        relay = FakeRelay(RELAY_1)
        await relay.connect()
        subscription = Subscription(session, {"kinds": [1]}, relay_set=RelaySet([relay]))
        handlers = recorder(subscription)
        subscription.start()
        await settle()

        handlers["eose"].assert_called_once_with(subscription)
        handlers["close"].assert_not_called()
        assert subscription.id in relay.subscriptions
