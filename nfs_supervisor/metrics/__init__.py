"""Prometheus metrics for nfs-ganesha I/O statistics."""

from nfs_supervisor.metrics.collectors import ClientsCollector, ExportsCollector
from nfs_supervisor.metrics.service import PrometheusMetricsService

__all__ = ["ClientsCollector", "ExportsCollector", "PrometheusMetricsService"]
