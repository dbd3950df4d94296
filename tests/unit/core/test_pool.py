"""
Unit tests for core.pool module.

Tests:
- PoolConfig validation and factories
- Membership: explicit relays, blacklist, duplicates
- relay:connect forwarding (once per transition)
- connect(timeout) racing attempts
- Temporary relays and TTL eviction
"""

import asyncio
from pathlib import Path
from unittest.mock import MagicMock

import pytest
from pydantic import ValidationError

from conftest import (
    RELAY_1,
    RELAY_2,
    RELAY_3,
    FakeNetwork,
    FakeRelay,
    fake_subscription,
    settle,
)
from nostrdk.core.pool import PoolConfig, RelayPool
from nostrdk.core.transport import WebSocketRelayConnection


class TestPoolConfig:
    """PoolConfig model."""

    def test_defaults(self):
        config = PoolConfig()
        assert config.connect_timeout == 10.0
        assert config.temporary_relay_ttl == 30.0
        assert config.blacklist == []
        assert config.verify_signatures is True

    def test_non_positive_timeout_rejected(self):
        with pytest.raises(ValidationError):
            PoolConfig(connect_timeout=0)

    def test_from_dict(self):
        assert PoolConfig.from_dict({"temporary_relay_ttl": 5}).temporary_relay_ttl == 5

    def test_from_yaml(self, tmp_path: Path):
        path = tmp_path / "pool.yaml"
        path.write_text("blacklist:\n  - wss://brb.io\n")
        assert PoolConfig.from_yaml(str(path)).blacklist == ["wss://brb.io"]


class TestMembership:
    """Explicit relays, blacklist and add_relay()."""

    def test_explicit_relays_normalized(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1 + "/", RELAY_2], relay_factory=network)
        assert list(pool.relays) == [RELAY_1, RELAY_2]
        assert pool.explicit_relay_urls == [RELAY_1, RELAY_2]
        assert pool.temporary_relay_urls == []

    def test_blacklisted_never_added(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1, RELAY_2], [RELAY_2], relay_factory=network)
        assert list(pool.relays) == [RELAY_1]
        assert pool.add_relay(FakeRelay(RELAY_2), connect=False) is False

    def test_config_blacklist_merged(self, network: FakeNetwork):
        pool = RelayPool(
            [RELAY_1], config=PoolConfig(blacklist=[RELAY_1.upper()]), relay_factory=network
        )
        assert RELAY_1 in pool.blacklist
        assert pool.relays == {}

    def test_duplicate_not_added(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1], relay_factory=network)
        assert pool.add_relay(FakeRelay(RELAY_1), connect=False) is False

    def test_relays_view_is_read_only(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1], relay_factory=network)
        with pytest.raises(TypeError):
            pool.relays[RELAY_2] = FakeRelay(RELAY_2)  # type: ignore[index]

    def test_default_factory_is_websocket(self):
        pool = RelayPool(config=PoolConfig(connect_timeout=3, verify_signatures=False))
        relay = pool.create_relay(RELAY_1)
        assert isinstance(relay, WebSocketRelayConnection)
        assert relay._timeout == 3
        assert relay.verify_signatures is False

    async def test_add_relay_connects_in_background(self):
        pool = RelayPool()
        relay = FakeRelay(RELAY_1)
        assert pool.add_relay(relay) is True
        assert not relay.is_connected
        await settle()
        assert relay.is_connected

    async def test_remove_relay(self):
        pool = RelayPool()
        relay = FakeRelay(RELAY_1)
        pool.add_relay(relay)
        await settle()
        assert pool.remove_relay(RELAY_1) is True
        assert pool.remove_relay(RELAY_1) is False
        await settle()
        assert not relay.is_connected


class TestSignals:
    """relay:connect forwarding."""

    async def test_relay_connect_forwarded_once_per_transition(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1], relay_factory=network)
        handler = MagicMock()
        pool.on("relay:connect", handler)
        relay = pool.relays[RELAY_1]
        await relay.connect()
        await relay.connect()
        handler.assert_called_once_with(relay)

        await relay.disconnect()
        await relay.connect()
        assert handler.call_count == 2

    async def test_relay_disconnect_forwarded(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1], relay_factory=network)
        handler = MagicMock()
        pool.on("relay:disconnect", handler)
        relay = pool.relays[RELAY_1]
        await relay.connect()
        await relay.disconnect()
        handler.assert_called_once_with(relay)

    async def test_removed_relay_no_longer_forwarded(self):
        pool = RelayPool()
        relay = FakeRelay(RELAY_1)
        pool.add_relay(relay, connect=False)
        handler = MagicMock()
        pool.on("relay:connect", handler)

        assert pool.remove_relay(RELAY_1) is True
        relay.go_online()

        handler.assert_not_called()
        assert relay.listener_count("connect") == 0
        assert relay.listener_count("notice") == 0

    async def test_notice_forwarded(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1], relay_factory=network)
        handler = MagicMock()
        pool.on("notice", handler)
        pool.relays[RELAY_1].receive('["NOTICE","hello"]')
        handler.assert_called_once_with(pool.relays[RELAY_1], "hello")


class TestConnect:
    """connect(timeout)."""

    async def test_connects_all(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1, RELAY_2, RELAY_3], relay_factory=network)
        await pool.connect()
        assert len(pool.connected_relays) == 3

    async def test_failures_logged_not_raised(self, network: FakeNetwork):
        network.failing.add(RELAY_2)
        pool = RelayPool([RELAY_1, RELAY_2], relay_factory=network)
        await pool.connect()
        assert [r.url for r in pool.connected_relays] == [RELAY_1]

    async def test_timeout_returns_while_attempts_continue(self):
        pool = RelayPool()
        fast = FakeRelay(RELAY_1)
        slow = FakeRelay(RELAY_2, connect_delay=0.2)
        pool.add_relay(fast, connect=False)
        pool.add_relay(slow, connect=False)

        await pool.connect(timeout=0.05)
        assert fast.is_connected
        assert not slow.is_connected

        await asyncio.sleep(0.3)
        assert slow.is_connected
        await pool.close()

    async def test_noop_when_all_connected(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1], relay_factory=network)
        await pool.connect()
        await pool.connect()
        assert pool.relays[RELAY_1].open_calls == 1

    async def test_async_context_manager(self, network: FakeNetwork):
        async with RelayPool([RELAY_1], relay_factory=network) as pool:
            assert pool.relays[RELAY_1].is_connected
        assert not pool.relays[RELAY_1].is_connected


class TestTemporaryRelays:
    """use_temporary_relay() and eviction."""

    async def test_untracked_relay_becomes_temporary(self):
        pool = RelayPool(config=PoolConfig(temporary_relay_ttl=60))
        relay = FakeRelay(RELAY_1)
        pool.use_temporary_relay(relay)
        assert pool.temporary_relay_urls == [RELAY_1]
        await pool.close()

    async def test_explicit_relay_stays_explicit(self, network: FakeNetwork):
        pool = RelayPool([RELAY_1], relay_factory=network)
        pool.use_temporary_relay(pool.relays[RELAY_1])
        assert pool.temporary_relay_urls == []
        assert pool._eviction_timers == {}

    async def test_blacklisted_relay_ignored(self):
        pool = RelayPool(blacklist=[RELAY_1])
        pool.use_temporary_relay(FakeRelay(RELAY_1))
        assert pool.relays == {}

    async def test_unused_relay_evicted_after_ttl(self):
        pool = RelayPool(config=PoolConfig(temporary_relay_ttl=0.01))
        pool.use_temporary_relay(FakeRelay(RELAY_1))
        await asyncio.sleep(0.05)
        assert RELAY_1 not in pool.relays

    async def test_relay_in_use_not_evicted(self):
        pool = RelayPool(config=PoolConfig(temporary_relay_ttl=0.01))
        relay = FakeRelay(RELAY_1)
        pool.use_temporary_relay(relay)
        subscription = fake_subscription()
        relay.subscribe(subscription)
        await asyncio.sleep(0.05)
        assert RELAY_1 in pool.relays

        relay.unsubscribe(subscription)
        await asyncio.sleep(0.05)
        assert RELAY_1 not in pool.relays

    async def test_reuse_extends_ttl(self):
        pool = RelayPool(config=PoolConfig(temporary_relay_ttl=0.05))
        relay = FakeRelay(RELAY_1)
        pool.use_temporary_relay(relay)
        await asyncio.sleep(0.03)
        pool.use_temporary_relay(relay)
        await asyncio.sleep(0.03)
        assert RELAY_1 in pool.relays
        await asyncio.sleep(0.05)
        assert RELAY_1 not in pool.relays

    async def test_borrowed_relay_not_disconnected_on_eviction(self):
        pool = RelayPool(config=PoolConfig(temporary_relay_ttl=0.01))
        relay = FakeRelay(RELAY_1)
        relay.go_online()

        pool.use_temporary_relay(relay, borrowed=True)
        assert pool.connected_relays == [relay]
        await asyncio.sleep(0.05)

        assert RELAY_1 not in pool.relays
        assert relay.is_connected
        assert relay.listener_count("disconnect") == 0

    async def test_borrowed_relay_not_connected_or_closed(self):
        pool = RelayPool(config=PoolConfig(temporary_relay_ttl=60))
        relay = FakeRelay(RELAY_1)

        pool.use_temporary_relay(relay, borrowed=True)
        await settle()
        assert relay.open_calls == 0

        relay.go_online()
        await pool.close()
        assert relay.is_connected
