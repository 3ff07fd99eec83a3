"""Fake MetricsRenderer that records the Accept headers it was asked for."""

from nfs_supervisor.core.protocols.metrics_renderer import MetricsRenderer, RenderedMetrics

FAKE_BODY = b"# fake metrics\n"


class FakeMetricsRenderer(MetricsRenderer):
    """In-memory spy implementing the MetricsRenderer protocol."""

    def __init__(self) -> None:
        self.accepts: list[str] = []

    def render(self, accept: str = "") -> RenderedMetrics:
        self.accepts.append(accept)
        return RenderedMetrics(FAKE_BODY, "text/plain; version=0.0.4; charset=utf-8")
