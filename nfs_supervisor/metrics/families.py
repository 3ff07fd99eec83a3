"""Metric family definitions shared by the export and client collectors."""

from dataclasses import dataclass

from prometheus_client.core import CounterMetricFamily

from nfs_supervisor.ganesha.stats import BasicIO

# Protocol names used by the server to identify the NFS version in use.
NFS_V40 = "NFSv40"
NFS_V41 = "NFSv41"
NFS_V42 = "NFSv42"

_VERSIONS = {
    NFS_V40: ("v40", "NFSv4.0"),
    NFS_V41: ("v41", "NFSv4.1"),
    NFS_V42: ("v42", "NFSv4.2"),
}

_NS_PER_SECOND = 1e9


@dataclass(frozen=True)
class _IOField:
    attr: str
    suffix: str
    help: str
    scale: float = 1.0


# Counter name suffixes follow the metric names already scraped in production,
# spelling included.
_IO_FIELDS = (
    _IOField("requested", "requested_bytes_total", "Number of requested bytes for {} operations"),
    _IOField(
        "transferred", "transfered_bytes_total", "Number of transfered bytes for {} operations"
    ),
    _IOField("total", "operations_total", "Number of operations for {}"),
    _IOField("errors", "operations_errors_total", "Number of operations in error for {}"),
    _IOField(
        "latency",
        "operations_latency_seconds_total",
        "Cumulative time consumed by operations for {}",
        _NS_PER_SECOND,
    ),
    _IOField(
        "queue_wait",
        "operations_queue_wait_seconds_total",
        "Cumulative time spent in rpc wait queue for {}",
        _NS_PER_SECOND,
    ),
)


def is_supported_version(protocol: str) -> bool:
    return protocol in _VERSIONS


class IOFamilies:
    """The six basic I/O counter families for one NFS version.

    Build a fresh instance on every collect; families accumulate samples.
    """

    def __init__(self, prefix: str, protocol: str, labels: list[str]):
        """Initialize the families.

        Args:
            prefix: Metric name prefix, e.g. ``storageos``.
            protocol: One of ``NFSv40``, ``NFSv41``, ``NFSv42``.
            labels: Label names; ``op`` must come first.
        """
        short, human = _VERSIONS[protocol]
        self._families = [
            (
                field,
                CounterMetricFamily(
                    f"{prefix}_nfs_{short}_{field.suffix}",
                    field.help.format(human),
                    labels=labels,
                ),
            )
            for field in _IO_FIELDS
        ]

    def add(self, op: str, io: BasicIO, label_values: list[str]) -> None:
        """Add one sample per counter for ``op`` (``read`` or ``write``)."""
        for field, family in self._families:
            family.add_metric([op, *label_values], getattr(io, field.attr) / field.scale)

    def add_read_write(self, read: BasicIO, write: BasicIO, label_values: list[str]) -> None:
        self.add("read", read, label_values)
        self.add("write", write, label_values)

    def __iter__(self):
        return (family for _, family in self._families)
