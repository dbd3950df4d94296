"""
Relay pool: the set of relays a session knows about.

[RelayPool][nostrdk.core.pool.RelayPool] maps normalized URLs to
[RelayConnection][nostrdk.core.relay.RelayConnection] instances. Relays
come in two kinds:

* **explicit**: configured on the session, kept for its whole lifetime.
* **temporary**: added to serve one request (a caller-supplied relay set);
  evicted ``temporary_relay_ttl`` seconds later once no subscription uses
  them. A borrowed temporary relay belongs to another pool and is never
  connected or disconnected by this one.

Blacklisted URLs are never added. The pool re-emits each relay's
``connect`` as ``relay:connect`` (once per transition) and ``disconnect``
as ``relay:disconnect``.

See Also:
    [Session][nostrdk.core.session.Session]: Owns a main pool and an
        optional outbox pool.
    [PoolConfig][nostrdk.core.pool.PoolConfig]: Timeouts, blacklist and
        eviction settings.

Examples:
    ```python
    pool = RelayPool(["wss://relay.damus.io", "wss://nos.lol"])
    await pool.connect(timeout=5.0)
    pool.connected_relays   # whichever relays made it in time
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable, Iterable, Mapping
from types import MappingProxyType
from typing import Any

from pydantic import BaseModel, Field

from nostrdk.models.relay_url import normalize_relay_url

from .emitter import Emitter
from .exceptions import ConnectivityError
from .logger import Logger
from .metrics import RELAYS_CONNECTED
from .relay import RelayConnection
from .transport import WebSocketRelayConnection
from .yaml import load_yaml


RelayFactory = Callable[[str], RelayConnection]


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class PoolConfig(BaseModel):
    """Relay pool settings.

    See Also:
        [SessionConfig][nostrdk.core.session.SessionConfig]: Embeds this
            model under ``pool``.
    """

    connect_timeout: float = Field(
        default=10.0, gt=0, description="Per-relay WebSocket handshake timeout (seconds)"
    )
    blacklist: list[str] = Field(
        default_factory=list, description="Relay URLs never added to the pool"
    )
    temporary_relay_ttl: float = Field(
        default=30.0, ge=0, description="Seconds before an unused temporary relay is evicted"
    )
    verify_signatures: bool = Field(
        default=True, description="Drop relay events whose id or signature does not verify"
    )

    @classmethod
    def from_yaml(cls, config_path: str) -> PoolConfig:
        return cls.model_validate(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> PoolConfig:
        return cls.model_validate(config_dict)


# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------


class RelayPool(Emitter):
    """URL-keyed collection of relay connections.

    Signals:
        relay:connect (relay): A pool relay transitioned into connected.
        relay:disconnect (relay): A pool relay lost its connection.
        notice (relay, message): A pool relay sent a ``NOTICE``.

    Args:
        explicit_relay_urls: Relays kept for the pool's lifetime.
        blacklist: URLs never added (merged with ``config.blacklist``).
        name: Pool name used in logs and metrics labels.
        config: Timeouts and eviction settings.
        relay_factory: Builds a connection for a URL. Defaults to
            [WebSocketRelayConnection][nostrdk.core.transport.WebSocketRelayConnection].
        metrics_enabled: Record the ``nostrdk_relays_connected`` gauge.

    Raises:
        ValueError: If an explicit or blacklisted URL is not a valid relay URL.
    """

    def __init__(
        self,
        explicit_relay_urls: Iterable[str] = (),
        blacklist: Iterable[str] = (),
        *,
        name: str = "main",
        config: PoolConfig | None = None,
        relay_factory: RelayFactory | None = None,
        metrics_enabled: bool = False,
    ) -> None:
        super().__init__()
        self.name = name
        self._config = config or PoolConfig()
        self._relay_factory = relay_factory or self._default_factory
        self._metrics_enabled = metrics_enabled
        self._logger = Logger("pool").bind(pool=name)

        self.blacklist: frozenset[str] = frozenset(
            normalize_relay_url(url) for url in (*self._config.blacklist, *blacklist)
        )
        self._relays: dict[str, RelayConnection] = {}
        self._temporary: set[str] = set()
        self._borrowed: set[str] = set()
        self._eviction_timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task[None]] = set()

        for url in explicit_relay_urls:
            self.add_relay(self.create_relay(url), connect=False)

    def _default_factory(self, url: str) -> RelayConnection:
        return WebSocketRelayConnection(
            url,
            timeout=self._config.connect_timeout,
            verify_signatures=self._config.verify_signatures,
        )

    # -------------------------------------------------------------------------
    # Membership
    # -------------------------------------------------------------------------

    @property
    def relays(self) -> Mapping[str, RelayConnection]:
        """Read-only view of the tracked relays, by normalized URL."""
        return MappingProxyType(self._relays)

    @property
    def connected_relays(self) -> list[RelayConnection]:
        return [relay for relay in self._relays.values() if relay.is_connected]

    @property
    def explicit_relay_urls(self) -> list[str]:
        return [url for url in self._relays if url not in self._temporary]

    @property
    def temporary_relay_urls(self) -> list[str]:
        return [url for url in self._relays if url in self._temporary]

    @property
    def config(self) -> PoolConfig:
        return self._config

    def create_relay(self, url: str) -> RelayConnection:
        """Build a connection for *url* with the pool's factory, without adding it."""
        return self._relay_factory(normalize_relay_url(url))

    def add_relay(self, relay: RelayConnection, *, connect: bool = True) -> bool:
        """Track *relay* and optionally start connecting it in the background.

        The connection attempt is not awaited. Its failures are logged.

        Returns:
            False if the URL is blacklisted or already tracked.
        """
        if relay.url in self.blacklist:
            self._logger.debug("relay_blacklisted", url=relay.url)
            return False
        if relay.url in self._relays:
            return False

        self._relays[relay.url] = relay
        relay.on("connect", self._on_relay_connect)
        relay.on("disconnect", self._on_relay_disconnect)
        relay.on("notice", self._on_relay_notice)
        self._logger.debug("relay_added", url=relay.url, connect=connect)

        if relay.is_connected:
            self._on_relay_connect(relay)
        elif connect:
            self._spawn(self._connect_relay(relay))
        return True

    def remove_relay(self, url: str) -> bool:
        """Stop tracking the relay at *url* and disconnect it in the background."""
        url = normalize_relay_url(url)
        relay = self._relays.pop(url, None)
        if relay is None:
            return False
        self._temporary.discard(url)
        borrowed = url in self._borrowed
        self._borrowed.discard(url)
        timer = self._eviction_timers.pop(url, None)
        if timer is not None:
            timer.cancel()
        relay.off("connect", self._on_relay_connect)
        relay.off("disconnect", self._on_relay_disconnect)
        relay.off("notice", self._on_relay_notice)
        if relay.is_connected:
            self._update_gauge(-1)
            if not borrowed:
                self._spawn(relay.disconnect())
        self._logger.debug("relay_removed", url=url)
        return True

    def use_temporary_relay(
        self, relay: RelayConnection, ttl: float | None = None, *, borrowed: bool = False
    ) -> None:
        """Serve a request from *relay*, adding it as temporary if untracked.

        An explicit relay already in the pool is left alone. An untracked
        relay is added and scheduled for eviction; a temporary relay used
        again gets its eviction pushed back. A *borrowed* relay is owned by
        another pool: this pool neither connects nor disconnects it.
        """
        already_tracked = relay.url in self._relays
        if not already_tracked:
            if not self.add_relay(relay, connect=not borrowed):
                return
            if borrowed:
                self._borrowed.add(relay.url)
        if already_tracked and relay.url not in self._temporary:
            return

        self._temporary.add(relay.url)
        self._schedule_eviction(relay.url, self._config.temporary_relay_ttl if ttl is None else ttl)

    def _schedule_eviction(self, url: str, ttl: float) -> None:
        timer = self._eviction_timers.pop(url, None)
        if timer is not None:
            timer.cancel()
        self._eviction_timers[url] = asyncio.get_running_loop().call_later(
            ttl, self._evict_temporary, url, ttl
        )

    def _evict_temporary(self, url: str, ttl: float) -> None:
        self._eviction_timers.pop(url, None)
        relay = self._relays.get(url)
        if relay is None or url not in self._temporary:
            return
        if relay.subscriptions:
            self._schedule_eviction(url, ttl)
            return
        self._logger.debug("temporary_relay_evicted", url=url)
        self.remove_relay(url)

    # -------------------------------------------------------------------------
    # Connectivity
    # -------------------------------------------------------------------------

    async def connect(self, timeout: float | None = None) -> None:  # noqa: ASYNC109
        """Connect every tracked relay that is not connected yet.

        Attempts run concurrently. With a *timeout* the call returns once it
        expires and the remaining attempts keep going in the background.
        Individual failures are logged, never raised.
        """
        pending = [relay for relay in self._relays.values() if not relay.is_connected]
        if not pending:
            return

        self._logger.info("pool_connecting", relays=len(pending), timeout=timeout)
        attempts = [self._spawn(self._connect_relay(relay)) for relay in pending]
        _, still_running = await asyncio.wait(attempts, timeout=timeout)
        self._logger.info(
            "pool_connect_finished",
            connected=len(self.connected_relays),
            total=len(self._relays),
            pending=len(still_running),
        )

    async def _connect_relay(self, relay: RelayConnection) -> None:
        try:
            await relay.connect()
        except (ConnectivityError, OSError, TimeoutError) as e:
            self._logger.warning("relay_connect_failed", url=relay.url, error=str(e))

    async def close(self) -> None:
        """Cancel timers and background work and disconnect every relay."""
        for timer in self._eviction_timers.values():
            timer.cancel()
        self._eviction_timers.clear()
        for task in list(self._tasks):
            task.cancel()
        owned = [relay for url, relay in self._relays.items() if url not in self._borrowed]
        await asyncio.gather(*(relay.disconnect() for relay in owned), return_exceptions=True)

    def _spawn(self, coro: Any) -> asyncio.Task[None]:
        task: asyncio.Task[None] = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    # -------------------------------------------------------------------------
    # Relay signals
    # -------------------------------------------------------------------------

    def _on_relay_connect(self, relay: RelayConnection) -> None:
        self._update_gauge(1)
        self._logger.debug("relay_connected", url=relay.url)
        self.emit("relay:connect", relay)

    def _on_relay_disconnect(self, relay: RelayConnection) -> None:
        self._update_gauge(-1)
        self._logger.debug("relay_disconnected", url=relay.url)
        self.emit("relay:disconnect", relay)

    def _on_relay_notice(self, relay: RelayConnection, message: str) -> None:
        self.emit("notice", relay, message)

    def _update_gauge(self, delta: int) -> None:
        if self._metrics_enabled:
            RELAYS_CONNECTED.labels(pool=self.name).inc(delta)

    async def __aenter__(self) -> RelayPool:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        return (
            f"RelayPool(name={self.name!r}, relays={len(self._relays)}, "
            f"connected={len(self.connected_relays)})"
        )
