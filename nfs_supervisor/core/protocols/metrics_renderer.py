"""MetricsRenderer protocol: turn the current metrics snapshot into a scrape body.

The renderer picks the exposition format from the scraper's ``Accept``
header, so the ``/metrics`` handler only forwards that header and copies the
result onto the response.
"""

from typing import NamedTuple, Protocol, runtime_checkable


class RenderedMetrics(NamedTuple):
    """A serialized scrape and the Content-Type it was encoded with."""

    body: bytes
    content_type: str


@runtime_checkable
class MetricsRenderer(Protocol):
    """Protocol for rendering collected metrics in a negotiated format."""

    def render(self, accept: str = "") -> RenderedMetrics:
        """Serialize all collected metrics.

        Args:
            accept: The scraper's Accept header.  Empty selects the
                Prometheus text format.
        """
        ...
