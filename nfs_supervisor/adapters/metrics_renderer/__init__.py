"""Metrics renderer adapters."""

from nfs_supervisor.adapters.metrics_renderer.fake import FakeMetricsRenderer
from nfs_supervisor.adapters.metrics_renderer.prometheus import PrometheusMetricsRenderer

__all__ = ["FakeMetricsRenderer", "PrometheusMetricsRenderer"]
