"""Health and metrics endpoint handlers."""

from typing import Protocol

from aiohttp import web

from nfs_supervisor.api.server import Handler
from nfs_supervisor.core.health import HealthService
from nfs_supervisor.core.logging import LoggerConfigurator
from nfs_supervisor.core.protocols.metrics_renderer import MetricsRenderer

HEALTH_ENDPOINT = "/healthz"
METRICS_ENDPOINT = "/metrics"

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "http"})


class RefreshableMetrics(Protocol):
    """A metrics source that must be refreshed before rendering."""

    renderer: MetricsRenderer

    async def refresh(self) -> None: ...


def health_handler(health: HealthService) -> Handler:
    """Return a handler that answers 200 while the NFS server heartbeats."""

    async def handle(request: web.Request) -> web.Response:
        if await health.check():
            return web.Response(text="ok", status=200)
        return web.Response(text="nfs server not ready", status=503)

    return handle


def metrics_handler(metrics: RefreshableMetrics) -> Handler:
    """Return a handler serving freshly collected metrics."""

    async def handle(request: web.Request) -> web.Response:
        await metrics.refresh()
        try:
            rendered = metrics.renderer.render(request.headers.get("Accept", ""))
        except Exception as e:
            logger.error(f"Failed to render metrics: {e}")
            return web.Response(text="failed to render metrics", status=500)
        response = web.Response(body=rendered.body)
        # content_type= cannot be used: the exposition types carry version parameters.
        response.headers["Content-Type"] = rendered.content_type
        return response

    return handle
