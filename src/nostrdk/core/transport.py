"""
aiohttp WebSocket transport for [RelayConnection][nostrdk.core.relay.RelayConnection].

Each connection owns one ``aiohttp.ClientSession`` and a reader task that
feeds text frames to
[RelayConnection.receive()][nostrdk.core.relay.RelayConnection.receive].
When the socket closes or errors, the reader marks the relay disconnected,
which emits ``disconnect`` once. Reconnection is left to the caller.

Examples:
    ```python
    relay = WebSocketRelayConnection("wss://relay.damus.io", timeout=5.0)
    await relay.connect()
    ```
"""

from __future__ import annotations

import asyncio

import aiohttp

from .exceptions import RelayConnectionError, RelayTimeoutError
from .relay import RelayConnection, RelayStatus


class WebSocketRelayConnection(RelayConnection):
    """Relay link over an aiohttp WebSocket.

    Args:
        url: Relay URL.
        timeout: Handshake timeout in seconds.
        heartbeat: Ping interval in seconds; None disables pings.
        verify_signatures: Drop events that fail verification.
    """

    def __init__(
        self,
        url: str,
        *,
        timeout: float = 10.0,  # noqa: ASYNC109
        heartbeat: float | None = 30.0,
        verify_signatures: bool = True,
    ) -> None:
        super().__init__(url, verify_signatures=verify_signatures)
        self._timeout = timeout
        self._heartbeat = heartbeat
        self._session: aiohttp.ClientSession | None = None
        self._ws: aiohttp.ClientWebSocketResponse | None = None
        self._reader: asyncio.Task[None] | None = None

    async def _open(self) -> None:
        self._session = aiohttp.ClientSession()
        try:
            self._ws = await asyncio.wait_for(
                self._session.ws_connect(self.url, heartbeat=self._heartbeat),
                timeout=self._timeout,
            )
        except TimeoutError as e:
            await self._release_session()
            raise RelayTimeoutError(f"Timed out connecting to {self.url}") from e
        except (aiohttp.ClientError, OSError) as e:
            await self._release_session()
            raise RelayConnectionError(f"Could not connect to {self.url}: {e}") from e

        self._reader = asyncio.get_running_loop().create_task(
            self._read_loop(), name=f"relay-reader:{self.url}"
        )

    async def _read_loop(self) -> None:
        ws = self._ws
        if ws is None:
            return
        try:
            async for msg in ws:
                if msg.type == aiohttp.WSMsgType.TEXT:
                    self.receive(msg.data)
                elif msg.type == aiohttp.WSMsgType.ERROR:
                    self._logger.warning("relay_socket_error", error=str(ws.exception()))
                    break
        finally:
            if self._status != RelayStatus.DISCONNECTING:
                await self._release_session()
                self._mark_disconnected()

    async def _close(self) -> None:
        if self._reader is not None and self._reader is not asyncio.current_task():
            self._reader.cancel()
        await self._release_session()

    async def _release_session(self) -> None:
        if self._ws is not None:
            await self._ws.close()
            self._ws = None
        if self._session is not None:
            await self._session.close()
            self._session = None

    async def _send(self, message: str) -> None:
        if self._ws is None or self._ws.closed:
            raise ConnectionError(f"Not connected to {self.url}")
        await self._ws.send_str(message)
