"""Core protocols for dependency injection."""

from nfs_supervisor.core.protocols.bus import BusSignal, SignalBus, SignalHandler
from nfs_supervisor.core.protocols.metrics_renderer import MetricsRenderer, RenderedMetrics

__all__ = [
    "BusSignal",
    "MetricsRenderer",
    "RenderedMetrics",
    "SignalBus",
    "SignalHandler",
]
