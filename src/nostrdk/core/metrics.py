"""
Prometheus metrics collection and HTTP exposition.

Defines module-level metric objects (singletons, thread-safe) recorded by
the pool, subscriptions and fetch helpers when ``MetricsConfig.enabled`` is
set on the owning [Session][nostrdk.core.session.Session].

The ``MetricsServer`` provides an async HTTP endpoint (via aiohttp) for
Prometheus scraping. The CLI starts it when metrics are enabled.

Architecture:
    EVENTS_RECEIVED:            Events delivered to subscriptions, by outcome
                                (``first`` or ``dup``).
    SUBSCRIPTIONS_ACTIVE:       Subscriptions currently registered on relays.
    RELAYS_CONNECTED:           Connected relays, by pool name.
    FETCH_DURATION_SECONDS:     Histogram of fetch_event/fetch_events latency.
"""

from __future__ import annotations

from aiohttp import web
from prometheus_client import (
    CONTENT_TYPE_LATEST,
    Counter,
    Gauge,
    Histogram,
    generate_latest,
)
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------


class MetricsConfig(BaseModel):
    """Configuration for metrics recording and the Prometheus endpoint.

    Set ``host`` to ``"0.0.0.0"`` in container environments to allow
    external scraping.
    """

    enabled: bool = Field(default=False, description="Enable metrics collection")
    port: int = Field(default=8000, ge=1024, le=65535, description="Metrics HTTP port")
    host: str = Field(default="127.0.0.1", description="Metrics HTTP bind address")
    path: str = Field(default="/metrics", description="Metrics endpoint path")


# ---------------------------------------------------------------------------
# Client Metrics
# ---------------------------------------------------------------------------

EVENTS_RECEIVED = Counter(
    "nostrdk_events_received",
    "Events delivered to subscriptions",
    ["outcome"],
)

SUBSCRIPTIONS_ACTIVE = Gauge(
    "nostrdk_subscriptions_active",
    "Subscriptions currently registered on relays",
)

RELAYS_CONNECTED = Gauge(
    "nostrdk_relays_connected",
    "Relays currently connected",
    ["pool"],
)

FETCH_DURATION_SECONDS = Histogram(
    "nostrdk_fetch_duration_seconds",
    "Duration of fetch operations in seconds",
    ["operation"],
    buckets=(0.05, 0.1, 0.25, 0.5, 1, 2.5, 5, 10, 30, 60),
)


# ---------------------------------------------------------------------------
# HTTP Server
# ---------------------------------------------------------------------------


class MetricsServer:
    """Async HTTP server exposing a Prometheus-compatible /metrics endpoint.

    Example:
        server = MetricsServer(MetricsConfig(enabled=True, port=8001))
        await server.start()
        # ... session runs ...
        await server.stop()
    """

    def __init__(self, config: MetricsConfig) -> None:
        self._config = config
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        """Start listening for scrape requests (no-op when disabled).

        Raises:
            OSError: If the port is already in use or binding fails.
        """
        if not self._config.enabled:
            return

        app = web.Application()
        app.router.add_get(self._config.path, self._handle_metrics)

        self._runner = web.AppRunner(app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._config.host, self._config.port)
        await site.start()

    async def stop(self) -> None:
        """Stop the HTTP server. Safe to call if it was never started."""
        if self._runner:
            await self._runner.cleanup()
            self._runner = None

    @staticmethod
    async def _handle_metrics(_request: web.Request) -> web.Response:
        return web.Response(body=generate_latest(), headers={"Content-Type": CONTENT_TYPE_LATEST})
