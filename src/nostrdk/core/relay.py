"""
Relay connection contract.

A [RelayConnection][nostrdk.core.relay.RelayConnection] is one link to one
relay. It owns the connection status and the subscriptions registered on
it, dispatches parsed NIP-01 frames to those subscriptions, and announces
transitions with the ``connect``, ``disconnect`` and ``notice`` signals.
Subclasses only move frames:
[WebSocketRelayConnection][nostrdk.core.transport.WebSocketRelayConnection]
over aiohttp, and the in-memory relay used by the test-suite.

Subscriptions registered while the relay is offline are kept and their
``REQ`` is sent on the next transition into ``CONNECTED``.

See Also:
    [RelayPool][nostrdk.core.pool.RelayPool]: Forwards ``connect`` as
        ``relay:connect``.
    [Subscription][nostrdk.core.subscription.Subscription]: Receives
        ``event_received`` and ``eose_received`` calls from relays.
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from enum import StrEnum
from typing import TYPE_CHECKING, Any

from nostrdk.models.event import Event
from nostrdk.models.relay_url import normalize_relay_url
from nostrdk.utils.protocol import encode_close, encode_req, parse_relay_message, verify_event

from .emitter import Emitter
from .logger import Logger


if TYPE_CHECKING:
    from .subscription import Subscription


class RelayStatus(StrEnum):
    """Connection status of a [RelayConnection][nostrdk.core.relay.RelayConnection]."""

    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    DISCONNECTING = "disconnecting"


class RelayConnection(Emitter, ABC):
    """One link to one relay.

    Signals:
        connect (relay): Emitted once per transition into ``CONNECTED``.
        disconnect (relay): Emitted once per transition out of ``CONNECTED``.
        notice (relay, message): A ``NOTICE`` frame arrived.

    Args:
        url: Relay URL; normalized on construction.
        verify_signatures: Drop events whose id or signature does not verify.

    Raises:
        ValueError: If *url* is not a valid relay URL.
    """

    def __init__(self, url: str, *, verify_signatures: bool = True) -> None:
        super().__init__()
        self.url = normalize_relay_url(url)
        self.verify_signatures = verify_signatures
        self._status = RelayStatus.DISCONNECTED
        self._subscriptions: dict[str, Subscription] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._logger = Logger("relay").bind(relay=self.url)

    # -------------------------------------------------------------------------
    # Transport hooks
    # -------------------------------------------------------------------------

    @abstractmethod
    async def _open(self) -> None:
        """Establish the link. Raise a ConnectivityError on failure."""

    @abstractmethod
    async def _close(self) -> None:
        """Tear the link down."""

    @abstractmethod
    async def _send(self, message: str) -> None:
        """Send one serialized frame."""

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    @property
    def status(self) -> RelayStatus:
        return self._status

    @property
    def is_connected(self) -> bool:
        return self._status == RelayStatus.CONNECTED

    @property
    def subscriptions(self) -> dict[str, Subscription]:
        """Snapshot of the subscriptions registered on this relay, by id."""
        return dict(self._subscriptions)

    async def connect(self) -> None:
        """Open the link. A no-op when already connected or connecting.

        Raises:
            ConnectivityError: If the transport cannot connect.
        """
        if self._status in (RelayStatus.CONNECTED, RelayStatus.CONNECTING):
            return
        self._status = RelayStatus.CONNECTING
        self._logger.debug("relay_connecting")
        try:
            await self._open()
        except BaseException:
            self._status = RelayStatus.DISCONNECTED
            raise
        self._mark_connected()

    async def disconnect(self) -> None:
        if self._status == RelayStatus.DISCONNECTED:
            return
        self._status = RelayStatus.DISCONNECTING
        try:
            await self._close()
        finally:
            self._mark_disconnected()

    def _mark_connected(self) -> None:
        if self._status == RelayStatus.CONNECTED:
            return
        self._status = RelayStatus.CONNECTED
        self._logger.info("relay_connected", subscriptions=len(self._subscriptions))
        self.emit("connect", self)
        for subscription in list(self._subscriptions.values()):
            self._send_later(encode_req(subscription.id, subscription.filters))

    def _mark_disconnected(self) -> None:
        was_connected = self._status in (RelayStatus.CONNECTED, RelayStatus.DISCONNECTING)
        self._status = RelayStatus.DISCONNECTED
        for task in self._tasks:
            task.cancel()
        if was_connected:
            self._logger.info("relay_disconnected")
            self.emit("disconnect", self)

    def _send_later(self, message: str) -> None:
        task = asyncio.get_running_loop().create_task(self._send_logged(message))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _send_logged(self, message: str) -> None:
        try:
            await self._send(message)
        except (OSError, ConnectionError) as e:
            self._logger.warning("relay_send_failed", error=str(e))

    # -------------------------------------------------------------------------
    # Subscriptions
    # -------------------------------------------------------------------------

    def subscribe(self, subscription: Subscription) -> None:
        """Register *subscription*; sends its ``REQ`` now or on the next connect."""
        self._subscriptions[subscription.id] = subscription
        if self.is_connected:
            self._send_later(encode_req(subscription.id, subscription.filters))

    def unsubscribe(self, subscription: Subscription) -> None:
        """Remove *subscription*; sends ``CLOSE`` if connected."""
        if self._subscriptions.pop(subscription.id, None) is None:
            return
        if self.is_connected:
            self._send_later(encode_close(subscription.id))

    # -------------------------------------------------------------------------
    # Inbound frames
    # -------------------------------------------------------------------------

    def receive(self, raw: str | bytes) -> None:
        """Parse one frame from the relay and dispatch it. Malformed frames are logged."""
        try:
            message = parse_relay_message(raw)
        except ValueError as e:
            self._logger.debug("relay_message_invalid", error=str(e))
            return
        self.dispatch(message)

    def dispatch(self, message: list[Any]) -> None:
        kind = message[0]
        if kind in ("EVENT", "EOSE", "CLOSED") and (
            len(message) < 2 or not isinstance(message[1], str)
        ):
            self._logger.debug("relay_message_invalid", type=kind, error="bad subscription id")
            return
        if kind == "EVENT" and len(message) >= 3:
            self._handle_event(message[1], message[2])
        elif kind == "EOSE" and len(message) >= 2:
            self._handle_eose(message[1])
        elif kind == "CLOSED" and len(message) >= 2:
            self._handle_closed(message[1], message[2] if len(message) > 2 else "")
        elif kind == "NOTICE" and len(message) >= 2:
            self._logger.info("relay_notice", message=message[1])
            self.emit("notice", self, message[1])
        else:
            self._logger.debug("relay_message_ignored", type=kind)

    def _handle_event(self, subscription_id: Any, payload: Any) -> None:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is None:
            return
        if not isinstance(payload, dict):
            self._logger.debug("event_invalid", sub_id=subscription_id, error="not an object")
            return
        try:
            event = Event.from_dict(payload, relay=self.url)
        except (ValueError, TypeError) as e:
            self._logger.debug("event_invalid", sub_id=subscription_id, error=str(e))
            return
        if self.verify_signatures and not verify_event(event):
            self._logger.warning("invalid_event_signature", event_id=event.id)
            return
        subscription.event_received(event, self)

    def _handle_eose(self, subscription_id: Any) -> None:
        subscription = self._subscriptions.get(subscription_id)
        if subscription is not None:
            subscription.eose_received(self)

    def _handle_closed(self, subscription_id: Any, reason: Any) -> None:
        # The relay will send nothing more for this subscription, so it counts
        # as end of stored events.
        subscription = self._subscriptions.pop(subscription_id, None)
        if subscription is None:
            return
        self._logger.warning("subscription_closed_by_relay", sub_id=subscription_id, reason=reason)
        subscription.eose_received(self)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.url!r}, status={self._status.value})"
