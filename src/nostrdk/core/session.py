"""
Session: the explicitly constructed context every operation runs in.

A [Session][nostrdk.core.session.Session] binds together:

* the main [RelayPool][nostrdk.core.pool.RelayPool] and, with the outbox
  model enabled, an outbox pool plus an
  [OutboxTracker][nostrdk.core.outbox.OutboxTracker];
* the signer and the active [User][nostrdk.core.user.User] derived from it;
* the user's mute state (``muted_ids``);
* the subscription factory and the fetch helpers built on it.

Bootstrap state machine:

```text
NO_USER --set_signer()--> USER_PENDING --signer.user()--> USER_ACTIVE
   ^                                                          |
   +------------------- set_active_user(None) ----------------+
```

Entering ``USER_ACTIVE`` with a new user runs "connect to the user's
relays" then "fetch the user's mute list", strictly in that order. When the
bootstrap pool (the outbox pool if present, else the main pool) has no
connected relay yet, the tasks wait for its first ``relay:connect``.
Failures inside bootstrap tasks are not caught here: they reach the event
loop's exception handler.

See Also:
    [SessionConfig][nostrdk.core.session.SessionConfig]: Relay lists,
        bootstrap switches and timeouts.
    [Subscription][nostrdk.core.subscription.Subscription]: Live stream
        returned by [subscribe()][nostrdk.core.session.Session.subscribe].

Examples:
    ```python
    session = Session(SessionConfig(explicit_relay_urls=["wss://relay.damus.io"]))
    await session.connect(timeout=5.0)

    event = await session.fetch_event("nevent1...")
    notes = await session.fetch_events({"kinds": [1], "authors": [pubkey], "limit": 20})
    ```
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable, Coroutine, Iterable, Mapping
from enum import StrEnum
from typing import Any

from pydantic import BaseModel, Field

from nostrdk.models.constants import DEFAULT_BLACKLISTED_RELAYS, DEFAULT_OUTBOX_RELAYS, EventKind
from nostrdk.models.event import Event
from nostrdk.models.filter import Filter, normalize_filters
from nostrdk.nips.nip19 import filter_from_id, is_addressable_value, relays_from_bech32
from nostrdk.nips.nip51 import mute_entries

from .cache import CacheAdapter
from .dedup import dedup_event
from .emitter import Emitter, OneShot
from .exceptions import InvalidFilterError, SignerRequiredError
from .logger import Logger
from .metrics import FETCH_DURATION_SECONDS, MetricsConfig
from .outbox import OutboxTracker
from .pool import PoolConfig, RelayFactory, RelayPool
from .relay import RelayConnection
from .relay_set import RelaySet
from .signer import Signer
from .subscription import Subscription, SubscriptionOptions
from .user import User
from .yaml import load_yaml


FilterInput = Filter | Mapping[str, Any] | Iterable[Any]
BootstrapStep = Callable[[User], Awaitable[None]]

_UNSET: Any = object()


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class SessionConfig(BaseModel):
    """Session settings, loadable from YAML.

    Examples:
        ```yaml
        explicit_relay_urls:
          - wss://relay.damus.io
          - wss://nos.lol
        enable_outbox_model: true
        fetch_timeout: 15
        pool:
          connect_timeout: 5
        ```
    """

    explicit_relay_urls: list[str] = Field(
        default_factory=list, description="Relays the main pool always tracks"
    )
    blacklist_relay_urls: list[str] = Field(
        default_factory=list, description="Relays never added to any pool"
    )
    outbox_relay_urls: list[str] = Field(
        default_factory=lambda: list(DEFAULT_OUTBOX_RELAYS),
        description="Relays of the outbox pool (relay list discovery)",
    )
    enable_outbox_model: bool = Field(default=False, description="Create the outbox pool")
    auto_connect_user_relays: bool = Field(
        default=True, description="Add the active user's NIP-65 relays to the pool"
    )
    auto_fetch_user_mutelist: bool = Field(
        default=True, description="Load the active user's mute list into muted_ids"
    )
    dev_write_relay_urls: list[str] = Field(
        default_factory=list, description="Relays used for writes during development"
    )
    fetch_timeout: float | None = Field(
        default=None, gt=0, description="Seconds before fetch_event/fetch_events give up"
    )
    pool: PoolConfig = Field(default_factory=PoolConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)

    @classmethod
    def from_yaml(cls, config_path: str) -> SessionConfig:
        """Load and validate a YAML config file.

        Raises:
            FileNotFoundError: If the file does not exist.
            ConfigurationError: If the YAML is invalid.
            pydantic.ValidationError: If a field is invalid.
        """
        return cls.model_validate(load_yaml(config_path))

    @classmethod
    def from_dict(cls, config_dict: dict[str, Any]) -> SessionConfig:
        return cls.model_validate(config_dict)


class SessionState(StrEnum):
    NO_USER = "no_user"
    USER_PENDING = "user_pending"
    USER_ACTIVE = "user_active"


# ---------------------------------------------------------------------------
# Session
# ---------------------------------------------------------------------------


class Session(Emitter):
    """Client context binding pools, identity, mute state and subscriptions.

    Signals:
        signer_required (): An operation needed a signer and none is set.

    Args:
        config: Session settings.
        signer: Initial signer. Resolving it needs a running event loop.
        cache_adapter: Stored and exposed, never called.
        muted_ids: Initial ``target -> category`` mute entries.
        relay_factory: Builds relay connections for both pools.
        outbox_tracker: Replaces the default tracker when the outbox model
            is enabled.

    Raises:
        ValueError: If a configured relay URL is invalid.
    """

    def __init__(
        self,
        config: SessionConfig | None = None,
        *,
        signer: Signer | None = None,
        cache_adapter: CacheAdapter | None = None,
        muted_ids: Mapping[str, str] | None = None,
        relay_factory: RelayFactory | None = None,
        outbox_tracker: OutboxTracker | None = None,
    ) -> None:
        super().__init__()
        self._config = config or SessionConfig()
        self._logger = Logger("session")
        self.metrics_enabled = self._config.metrics.enabled

        self.explicit_relay_urls = list(self._config.explicit_relay_urls)
        self.blacklist_relay_urls = list(self._config.blacklist_relay_urls)
        self.auto_connect_user_relays = self._config.auto_connect_user_relays
        self.auto_fetch_user_mutelist = self._config.auto_fetch_user_mutelist
        self.cache_adapter = cache_adapter
        self.muted_ids: dict[str, str] = dict(muted_ids or {})

        self.pool = RelayPool(
            self.explicit_relay_urls,
            self.blacklist_relay_urls,
            name="main",
            config=self._config.pool,
            relay_factory=relay_factory,
            metrics_enabled=self.metrics_enabled,
        )
        self.outbox_pool: RelayPool | None = None
        self.outbox_tracker: OutboxTracker | None = None
        if self._config.enable_outbox_model:
            self.outbox_pool = RelayPool(
                self._config.outbox_relay_urls,
                self.blacklist_relay_urls or DEFAULT_BLACKLISTED_RELAYS,
                name="outbox",
                config=self._config.pool,
                relay_factory=relay_factory,
                metrics_enabled=self.metrics_enabled,
            )
            self.outbox_tracker = outbox_tracker or OutboxTracker(self)

        self.dev_write_relay_set: RelaySet | None = None
        if self._config.dev_write_relay_urls:
            self.dev_write_relay_set = RelaySet.from_relay_urls(
                self._config.dev_write_relay_urls, self.pool
            )

        self._signer: Signer | None = None
        self._active_user: User | None = None
        self._state = SessionState.NO_USER
        self._bootstrap_waiter: OneShot | None = None
        self._tasks: set[asyncio.Task[Any]] = set()

        if signer is not None:
            self.set_signer(signer)

    # -------------------------------------------------------------------------
    # Properties
    # -------------------------------------------------------------------------

    @property
    def config(self) -> SessionConfig:
        return self._config

    @property
    def signer(self) -> Signer | None:
        return self._signer

    @property
    def active_user(self) -> User | None:
        return self._active_user

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def bootstrap_pending(self) -> bool:
        """True while a bootstrap waits for the first ``relay:connect``."""
        return self._bootstrap_waiter is not None and self._bootstrap_waiter.pending

    # -------------------------------------------------------------------------
    # Identity and bootstrap
    # -------------------------------------------------------------------------

    def set_signer(self, signer: Signer | None) -> asyncio.Task[None] | None:
        """Install *signer* and resolve its user in the background.

        Returns:
            The resolution task (awaitable by callers who need the active
            user), or None when *signer* is None.
        """
        self._signer = signer
        if signer is None:
            return None
        self._state = SessionState.USER_PENDING
        self._logger.debug("signer_set", signer=type(signer).__name__)
        return self._spawn(self._resolve_signer(signer), name="resolve-signer")

    async def _resolve_signer(self, signer: Signer) -> None:
        user = await signer.user()
        if self._signer is not signer:
            self._logger.debug("signer_superseded", pubkey=user.pubkey)
            return
        self.set_active_user(user)

    def set_active_user(self, user: User | None) -> None:
        """Make *user* the active user and bootstrap it.

        Setting the user that is already active (same pubkey) does nothing.
        Setting None clears the active user and ``muted_ids``.
        """
        if user is None:
            self._cancel_bootstrap()
            self._active_user = None
            self._state = SessionState.NO_USER
            self.muted_ids = {}
            self._logger.info("active_user_cleared")
            return

        if self._active_user is not None and self._active_user.pubkey == user.pubkey:
            self._state = SessionState.USER_ACTIVE
            return

        self._cancel_bootstrap()
        if user.session is None:
            user.session = self
        self._active_user = user
        self._state = SessionState.USER_ACTIVE
        self._logger.info("active_user_changed", pubkey=user.pubkey)
        self._schedule_bootstrap(user)

    def _bootstrap_steps(self) -> list[BootstrapStep]:
        steps: list[BootstrapStep] = []
        if self.auto_connect_user_relays:
            steps.append(self._connect_to_user_relays)
        if self.auto_fetch_user_mutelist:
            steps.append(self._fetch_user_mute_list)
        return steps

    def _schedule_bootstrap(self, user: User) -> None:
        steps = self._bootstrap_steps()
        if not steps:
            return

        pool = self.outbox_pool or self.pool
        if pool.connected_relays:
            self._spawn(self._run_bootstrap(user, steps), name="bootstrap")
            return

        self._logger.info("bootstrap_deferred", pool=pool.name, pubkey=user.pubkey)
        self._bootstrap_waiter = OneShot(
            pool,
            "relay:connect",
            lambda _relay: self._spawn(self._run_bootstrap(user, steps), name="bootstrap"),
        )

    def _cancel_bootstrap(self) -> None:
        if self._bootstrap_waiter is not None:
            self._bootstrap_waiter.cancel()
            self._bootstrap_waiter = None

    async def _run_bootstrap(self, user: User, steps: list[BootstrapStep]) -> None:
        self._logger.debug("bootstrap_started", pubkey=user.pubkey, steps=len(steps))
        for step in steps:
            await step(user)
        self._logger.debug("bootstrap_finished", pubkey=user.pubkey)

    async def _connect_to_user_relays(self, user: User) -> None:
        relay_list = await user.relay_list()
        if relay_list is None:
            self._logger.info("user_relay_list_missing", pubkey=user.pubkey)
            return

        added = 0
        for url in relay_list.relays:
            if url in self.pool.relays or url in self.pool.blacklist:
                continue
            if self.pool.add_relay(self.pool.create_relay(url)):
                added += 1
        self._logger.info("user_relays_added", pubkey=user.pubkey, added=added)

    async def _fetch_user_mute_list(self, user: User) -> None:
        events = await self.fetch_events(
            [
                Filter(kinds=[EventKind.MUTE_LIST], authors=[user.pubkey]),
                Filter(
                    kinds=[EventKind.CATEGORIZED_PEOPLE_LIST],
                    authors=[user.pubkey],
                    tags={"d": ["mute"]},
                    limit=1,
                ),
            ]
        )
        if self._active_user is not user:
            self._logger.debug("mute_list_discarded", pubkey=user.pubkey)
            return

        entries = mute_entries(sorted(events, key=lambda e: (e.created_at, e.id)))
        user.mute_list = entries
        self.muted_ids = dict(entries)
        if not events:
            self._logger.info("user_mute_list_missing", pubkey=user.pubkey)
        else:
            self._logger.info("user_mute_list_loaded", pubkey=user.pubkey, entries=len(entries))

    # -------------------------------------------------------------------------
    # Connectivity and users
    # -------------------------------------------------------------------------

    async def connect(self, timeout: float | None = None) -> None:  # noqa: ASYNC109
        """Connect the main and outbox pools concurrently and wait for both to settle."""
        pools = [self.pool] if self.outbox_pool is None else [self.pool, self.outbox_pool]
        results = await asyncio.gather(
            *(pool.connect(timeout) for pool in pools), return_exceptions=True
        )
        for pool, result in zip(pools, results, strict=True):
            if isinstance(result, asyncio.CancelledError):
                raise result
            if isinstance(result, BaseException):
                self._logger.warning("pool_connect_failed", pool=pool.name, error=str(result))

    def get_user(self, *, pubkey: str | None = None, npub: str | None = None) -> User:
        """Return a user bound to this session.

        Raises:
            ValueError: Unless exactly one of *pubkey* and *npub* is given
                and valid.
        """
        if (pubkey is None) == (npub is None):
            raise ValueError("Pass exactly one of pubkey or npub")
        if npub is not None:
            return User.from_npub(npub, session=self)
        return User(pubkey, session=self)  # type: ignore[arg-type]

    def assert_signer(self) -> Signer:
        """Return the signer, or emit ``signer_required`` and raise.

        Raises:
            SignerRequiredError: If no signer is set.
        """
        if self._signer is None:
            self.emit("signer_required")
            raise SignerRequiredError("A signer is required for this operation")
        return self._signer

    async def close(self) -> None:
        """Cancel background work and disconnect both pools."""
        self._cancel_bootstrap()
        for task in list(self._tasks):
            task.cancel()
        if self.outbox_tracker is not None:
            await self.outbox_tracker.close()
        await self.pool.close()
        if self.outbox_pool is not None:
            await self.outbox_pool.close()

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(
        self,
        filters: FilterInput,
        options: SubscriptionOptions | None = None,
        relay_set: RelaySet | None = None,
        *,
        auto_start: bool = True,
    ) -> Subscription:
        """Create a subscription and, by default, start it.

        A caller-supplied *relay_set* is used as is and its relays become
        temporary pool members; otherwise the subscription queries the whole
        pool. Authors in the filters are reported to the outbox tracker.

        Raises:
            InvalidFilterError: If no filter is given or one is malformed.
        """
        try:
            subscription = Subscription(self, filters, options, relay_set)
        except (TypeError, ValueError) as e:
            raise InvalidFilterError(str(e)) from e

        if relay_set is not None:
            outbox_relays = self.outbox_pool.relays if self.outbox_pool is not None else {}
            for relay in relay_set:
                borrowed = outbox_relays.get(relay.url) is relay
                self.pool.use_temporary_relay(relay, borrowed=borrowed)

        if self.outbox_tracker is not None and subscription.has_authors_filter():
            self.outbox_tracker.track_users(subscription.authors())

        if auto_start:
            subscription.start()
        return subscription

    async def fetch_event(
        self,
        id_or_filter: str | Filter | Mapping[str, Any],
        options: SubscriptionOptions | None = None,
        relay_set: RelaySet | None = None,
        *,
        timeout: float | None = _UNSET,  # noqa: ASYNC109
    ) -> Event | None:
        """Fetch the first event matching an id or a filter.

        Args:
            id_or_filter: ``note``/``nevent``/``naddr`` entity, hex event id,
                ``kind:pubkey:d`` coordinate, or a filter.
            options: Subscription options; ``close_on_eose`` is forced on.
            relay_set: Relays to query. When omitted, relay hints embedded in
                a bech32 id are used, restricted to relays the pool tracks.
            timeout: Seconds to wait. Defaults to ``SessionConfig.fetch_timeout``.

        Returns:
            The first event delivered by any relay, or None if every relay
            reached EOSE (or the timeout passed) without one.

        Raises:
            InvalidFilterError: If the id or filter is malformed or empty.
        """
        if relay_set is None and isinstance(id_or_filter, str):
            relay_set = self._relay_set_from_hints(id_or_filter)

        filter_ = self._filter_from(id_or_filter)
        subscription = self.subscribe(
            filter_, self._fetch_options(options), relay_set, auto_start=False
        )
        future: asyncio.Future[Event | None] = asyncio.get_running_loop().create_future()

        def _on_event(event: Event, _relay: RelayConnection | None = None) -> None:
            if not future.done():
                future.set_result(event)

        def _on_eose(_subscription: Subscription) -> None:
            if not future.done():
                future.set_result(None)

        subscription.on("event", _on_event)
        subscription.on("eose", _on_eose)
        subscription.start()

        return await self._await_fetch(
            "fetch_event", future, subscription, timeout, on_timeout=lambda: None
        )

    async def fetch_events(
        self,
        filters: FilterInput,
        options: SubscriptionOptions | None = None,
        relay_set: RelaySet | None = None,
        *,
        timeout: float | None = _UNSET,  # noqa: ASYNC109
    ) -> set[Event]:
        """Fetch every event matching *filters* until all relays reach EOSE.

        Copies sharing a deduplication key are merged with
        [dedup_event()][nostrdk.core.dedup.dedup_event]; the kept copy
        carries the union of relays it was seen on.

        Returns:
            The merged events (unordered). On timeout, whatever arrived so far.

        Raises:
            InvalidFilterError: If no filter is given or one is malformed.
        """
        subscription = self.subscribe(
            filters, self._fetch_options(options), relay_set, auto_start=False
        )
        events: dict[str, Event] = {}
        future: asyncio.Future[set[Event]] = asyncio.get_running_loop().create_future()

        def _on_event(event: Event, _relay: RelayConnection | None = None) -> None:
            key = event.deduplication_key()
            existing = events.get(key)
            events[key] = event if existing is None else dedup_event(existing, event)

        def _on_eose(_subscription: Subscription) -> None:
            if not future.done():
                future.set_result(set(events.values()))

        subscription.on("event", _on_event)
        subscription.on("event:dup", _on_event)
        subscription.on("eose", _on_eose)
        subscription.start()

        return await self._await_fetch(
            "fetch_events",
            future,
            subscription,
            timeout,
            on_timeout=lambda: set(events.values()),
        )

    def _relay_set_from_hints(self, value: str) -> RelaySet | None:
        if is_addressable_value(value):
            return None
        hints = relays_from_bech32(value)
        if not hints:
            return None
        relay_set = RelaySet.from_relay_urls(hints, self.pool).corrected(self.pool)
        self._logger.debug("relay_hints_used", hints=len(hints), tracked=len(relay_set))
        return relay_set

    @staticmethod
    def _filter_from(id_or_filter: str | Filter | Mapping[str, Any]) -> Filter:
        try:
            if isinstance(id_or_filter, str):
                return filter_from_id(id_or_filter)
            filter_ = normalize_filters(id_or_filter)[0]
        except (TypeError, ValueError) as e:
            raise InvalidFilterError(str(e)) from e
        if filter_.is_empty():
            raise InvalidFilterError("Filter must constrain at least one field")
        return filter_

    @staticmethod
    def _fetch_options(options: SubscriptionOptions | None) -> SubscriptionOptions:
        return (options or SubscriptionOptions()).model_copy(update={"close_on_eose": True})

    async def _await_fetch(
        self,
        operation: str,
        future: asyncio.Future[Any],
        subscription: Subscription,
        timeout: float | None,  # noqa: ASYNC109
        *,
        on_timeout: Callable[[], Any],
    ) -> Any:
        if timeout is _UNSET:
            timeout = self._config.fetch_timeout
        start = time.monotonic()
        try:
            return await asyncio.wait_for(future, timeout)
        except TimeoutError:
            self._logger.warning(
                "fetch_timeout", operation=operation, sub_id=subscription.id, timeout=timeout
            )
            subscription.stop()
            return on_timeout()
        finally:
            if self.metrics_enabled:
                FETCH_DURATION_SECONDS.labels(operation=operation).observe(
                    time.monotonic() - start
                )

    # -------------------------------------------------------------------------
    # Background tasks
    # -------------------------------------------------------------------------

    def _spawn(self, coro: Coroutine[Any, Any, Any], *, name: str) -> asyncio.Task[Any]:
        loop = asyncio.get_running_loop()
        task = loop.create_task(coro, name=name)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task[Any]) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            task.get_loop().call_exception_handler(
                {
                    "message": f"Session task {task.get_name()!r} failed",
                    "exception": exc,
                    "task": task,
                }
            )

    async def __aenter__(self) -> Session:
        await self.connect()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    def __repr__(self) -> str:
        user = self._active_user.pubkey[:16] if self._active_user else None
        return (
            f"Session(state={self._state.value}, user={user!r}, relays={len(self.pool.relays)}, "
            f"outbox={self.outbox_pool is not None})"
        )
