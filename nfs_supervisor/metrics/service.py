"""Prometheus-backed metrics facade.

Owns the dedicated CollectorRegistry, the NFS collectors that read from it,
and the renderer that serializes it, so the HTTP surface deals with one
object: ``await refresh()`` then ``renderer.render(accept)``.
"""

import asyncio

from prometheus_client import CollectorRegistry, PlatformCollector, ProcessCollector

from nfs_supervisor.adapters.metrics_renderer.prometheus import PrometheusMetricsRenderer
from nfs_supervisor.core.protocols.bus import SignalBus
from nfs_supervisor.core.protocols.metrics_renderer import MetricsRenderer
from nfs_supervisor.ganesha.clients import ClientMgr
from nfs_supervisor.ganesha.exports import ExportMgr
from nfs_supervisor.metrics.collectors import ClientsCollector, ExportsCollector


class PrometheusMetricsService:
    """Collects NFS export and client stats plus supervisor process stats.

    ``name`` and ``namespace`` label every NFS sample so operators can
    correlate it with the volume they know.
    """

    renderer: MetricsRenderer

    def __init__(self, bus: SignalBus, name: str, namespace: str) -> None:
        self._registry = CollectorRegistry()
        ProcessCollector(registry=self._registry)
        PlatformCollector(registry=self._registry)

        self.exports = ExportsCollector(ExportMgr(bus), name, namespace)
        self.clients = ClientsCollector(ClientMgr(bus), name, namespace)
        self._registry.register(self.exports)
        self._registry.register(self.clients)

        self.renderer = PrometheusMetricsRenderer(self._registry)

    @property
    def registry(self) -> CollectorRegistry:
        return self._registry

    async def refresh(self) -> None:
        """Fetch fresh stats from the NFS server for the next render."""
        await asyncio.gather(self.exports.refresh(), self.clients.refresh())
