"""
Status server for a running network.

Provides HTTP endpoints for:
- /paranet/v0/health - Whether every node is running and every channel accepted
- /paranet/v0/network - Full network report as JSON
- /metrics - Prometheus metrics endpoint
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, field
from typing import Final

from aiohttp import web

from paranet.config import HOST
from paranet.metrics import generate_metrics
from paranet.network import NetworkHandle

logger = logging.getLogger(__name__)

SERVICE_NAME: Final = "paranet"
"""Fixed service identifier returned by the health endpoint."""


def _no_handle() -> NetworkHandle | None:
    """Default handle getter that returns None."""
    return None


async def _handle_metrics(_request: web.Request) -> web.Response:
    """Handle Prometheus metrics endpoint."""
    return web.Response(
        body=generate_metrics(),
        content_type="text/plain; version=0.0.4",
        charset="utf-8",
    )


@dataclass(frozen=True, slots=True)
class ApiServerConfig:
    """Configuration for the status server."""

    host: str = HOST
    """Host address to bind to."""

    port: int = 9_615
    """Port to listen on."""

    enabled: bool = True
    """Whether the status server is enabled."""


@dataclass(slots=True)
class ApiServer:
    """
    HTTP status server for a launched network.

    The handle is fetched on every request, so the server can start
    before the launch completes and reports "starting" until then.
    """

    config: ApiServerConfig
    """Server configuration."""

    handle_getter: Callable[[], NetworkHandle | None] = _no_handle
    """Callable that returns the current network handle."""

    _runner: web.AppRunner | None = field(default=None, init=False)
    """The aiohttp application runner."""

    _site: web.TCPSite | None = field(default=None, init=False)
    """The TCP site for the server."""

    @property
    def handle(self) -> NetworkHandle | None:
        """Get the current network handle."""
        return self.handle_getter()

    @property
    def is_running(self) -> bool:
        """Whether the server is accepting requests."""
        return self._runner is not None

    async def start(self) -> None:
        """Start the status server in the background."""
        if not self.config.enabled:
            logger.info("Status server is disabled")
            return

        app = web.Application()
        app.add_routes(
            [
                web.get("/paranet/v0/health", self._handle_health),
                web.get("/paranet/v0/network", self._handle_network),
                web.get("/metrics", _handle_metrics),
            ]
        )

        self._runner = web.AppRunner(app)
        await self._runner.setup()

        self._site = web.TCPSite(self._runner, self.config.host, self.config.port)
        await self._site.start()

        logger.info("Status server listening on %s:%d", self.config.host, self.config.port)

    async def stop(self) -> None:
        """Gracefully stop the server. Does nothing if it is not running."""
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None
            self._site = None
            logger.info("Status server stopped")

    async def _handle_health(self, _request: web.Request) -> web.Response:
        """
        Handle health check request.

        Response: JSON object with fields:
            - status (string): "starting", "healthy" or "degraded".
            - service (string): Fixed identifier "paranet".

        Status Codes:
            200 OK: Network is healthy.
            503 Service Unavailable: Network is starting or degraded.
        """
        handle = self.handle
        if handle is None:
            status = "starting"
        elif handle.is_healthy:
            status = "healthy"
        else:
            status = "degraded"

        return web.json_response(
            {"status": status, "service": SERVICE_NAME},
            status=200 if status == "healthy" else 503,
        )

    async def _handle_network(self, _request: web.Request) -> web.Response:
        """
        Handle network report request.

        Returns the current NetworkReport with camelCase keys.
        """
        handle = self.handle
        if handle is None:
            raise web.HTTPServiceUnavailable(reason="Network not launched")

        return web.Response(
            text=handle.report().model_dump_json(by_alias=True),
            content_type="application/json",
        )
