"""
Per-instance signal dispatch.

[Emitter][nostrdk.core.emitter.Emitter] is the base of every component
that announces state changes: relays (``connect``, ``disconnect``,
``notice``), pools (``relay:connect``, ``relay:disconnect``), subscriptions
(``event``, ``event:dup``, ``eose``, ``close``) and the session
(``signer_required``). Handlers run synchronously, in registration order,
on the event loop thread.

[OneShot][nostrdk.core.emitter.OneShot] waits for the next emission of one
signal, fires its callback once, and can be cancelled before it fires. The
session uses it to defer the user bootstrap until the pool first connects.

Examples:
    ```python
    sub.on("event", lambda event, relay: print(event.id))
    sub.once("eose", lambda sub: print("stored events done"))

    waiter = OneShot(pool, "relay:connect", lambda relay: start_bootstrap())
    waiter.cancel()  # the bootstrap no longer runs
    ```
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any


Handler = Callable[..., Any]


class Emitter:
    """Minimal synchronous event emitter.

    Handler exceptions are not caught: they propagate to the code that
    called [emit()][nostrdk.core.emitter.Emitter.emit], which for relay
    traffic is the transport's reader task.
    """

    def __init__(self) -> None:
        self._handlers: dict[str, list[tuple[Handler, bool]]] = {}

    def on(self, signal: str, handler: Handler) -> Handler:
        """Register *handler* for every emission of *signal*. Returns the handler."""
        self._handlers.setdefault(signal, []).append((handler, False))
        return handler

    def once(self, signal: str, handler: Handler) -> Handler:
        """Register *handler* for the next emission of *signal* only."""
        self._handlers.setdefault(signal, []).append((handler, True))
        return handler

    def off(self, signal: str, handler: Handler) -> None:
        """Remove every registration of *handler* for *signal*."""
        handlers = self._handlers.get(signal)
        if not handlers:
            return
        remaining = [entry for entry in handlers if entry[0] != handler]
        if remaining:
            self._handlers[signal] = remaining
        else:
            del self._handlers[signal]

    def emit(self, signal: str, *args: Any) -> bool:
        """Call the handlers registered for *signal* with *args*.

        Returns:
            True if at least one handler was called.
        """
        handlers = self._handlers.get(signal)
        if not handlers:
            return False

        # Snapshot so handlers may register or remove handlers while running
        snapshot = list(handlers)
        once = [entry for entry in snapshot if entry[1]]
        if once:
            kept = [entry for entry in handlers if entry not in once]
            if kept:
                self._handlers[signal] = kept
            else:
                del self._handlers[signal]

        for handler, _ in snapshot:
            handler(*args)
        return True

    def listener_count(self, signal: str) -> int:
        return len(self._handlers.get(signal, ()))

    async def wait_for(
        self, signal: str, timeout: float | None = None  # noqa: ASYNC109
    ) -> tuple[Any, ...]:
        """Wait for the next emission of *signal* and return its arguments.

        Raises:
            TimeoutError: If *timeout* seconds pass first.
        """
        future: asyncio.Future[tuple[Any, ...]] = asyncio.get_running_loop().create_future()

        def _resolve(*args: Any) -> None:
            if not future.done():
                future.set_result(args)

        self.once(signal, _resolve)
        try:
            return await asyncio.wait_for(future, timeout)
        finally:
            self.off(signal, _resolve)


class OneShot:
    """Cancellable waiter that runs *callback* on the next emission of *signal*.

    The callback receives the signal's arguments and runs at most once. Once
    fired or cancelled the waiter detaches from the emitter.

    Attributes:
        fired: True once the callback has run.
        cancelled: True once [cancel()][nostrdk.core.emitter.OneShot.cancel]
            ran before the signal arrived.
    """

    def __init__(self, emitter: Emitter, signal: str, callback: Handler) -> None:
        self._emitter = emitter
        self._signal = signal
        self._callback = callback
        self.fired = False
        self.cancelled = False
        emitter.on(signal, self._on_signal)

    @property
    def pending(self) -> bool:
        return not self.fired and not self.cancelled

    def _on_signal(self, *args: Any) -> None:
        if not self.pending:
            return
        self.fired = True
        self._emitter.off(self._signal, self._on_signal)
        self._callback(*args)

    def cancel(self) -> bool:
        """Detach without firing. Returns False if already fired or cancelled."""
        if not self.pending:
            return False
        self.cancelled = True
        self._emitter.off(self._signal, self._on_signal)
        return True

    def __repr__(self) -> str:
        state = "fired" if self.fired else "cancelled" if self.cancelled else "pending"
        return f"OneShot(signal={self._signal!r}, {state})"
