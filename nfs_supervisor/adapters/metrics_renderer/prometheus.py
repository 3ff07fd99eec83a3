"""Prometheus implementation of the MetricsRenderer protocol."""

from prometheus_client import CollectorRegistry
from prometheus_client.exposition import choose_encoder

from nfs_supervisor.core.protocols.metrics_renderer import MetricsRenderer, RenderedMetrics


class PrometheusMetricsRenderer(MetricsRenderer):
    """Render one registry as Prometheus text or OpenMetrics.

    OpenMetrics is only used when the scraper asks for
    ``application/openmetrics-text``; anything else gets the classic text
    format that every Prometheus version understands.
    """

    def __init__(self, registry: CollectorRegistry) -> None:
        self._registry = registry

    def render(self, accept: str = "") -> RenderedMetrics:
        encode, content_type = choose_encoder(accept)
        return RenderedMetrics(encode(self._registry), content_type)
