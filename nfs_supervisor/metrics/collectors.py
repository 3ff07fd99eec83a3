"""Prometheus collectors for nfs-ganesha export and client I/O stats.

Stats are fetched over the bus, which is async, while prometheus-client
collects synchronously.  Each collector therefore keeps the snapshot from
its last ``refresh()`` and renders that on ``collect()``.  The metrics
endpoint refreshes immediately before every scrape.
"""

from collections.abc import Iterator

from prometheus_client.core import Metric
from prometheus_client.registry import Collector

from nfs_supervisor.core.logging import LoggerConfigurator
from nfs_supervisor.ganesha.clients import ClientMgr
from nfs_supervisor.ganesha.exports import ExportMgr
from nfs_supervisor.ganesha.stats import BasicIO, BasicStats, Client, ExportIOStatsList
from nfs_supervisor.metrics.families import NFS_V40, NFS_V41, IOFamilies, is_supported_version

EXPORTS_PREFIX = "storageos"
CLIENTS_PREFIX = "storageos_clients"

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "metrics"})

# Reported for a client the server has no counters for, so its series stay present.
_NO_IO = BasicIO(requested=0, transferred=0, total=0, errors=0, latency=0, queue_wait=0)


class ExportsCollector(Collector):
    """Collects I/O stats for NFS exports.

    A single export per server is expected, but the server returns one record
    per protocol used to access it, all with the same export id.  The export
    id is internal, so samples are labelled with the ``name`` and
    ``namespace`` the operator knows the volume by instead.
    """

    def __init__(self, export_mgr: ExportMgr, name: str, namespace: str):
        self._export_mgr = export_mgr
        self._name = name
        self._namespace = namespace
        self._stats: ExportIOStatsList | None = None

    async def refresh(self) -> None:
        try:
            self._stats = await self._export_mgr.get_io_stats()
        except Exception as e:
            logger.warning(f"Failed to get nfs stats for exports: {e}")
            self._stats = None

    def collect(self) -> Iterator[Metric]:
        if self._stats is None:
            return
        families: dict[str, IOFamilies] = {}
        for export in self._stats.exports:
            if not is_supported_version(export.name):
                logger.warning(f"Unhandled NFS version: {export.name}")
                continue
            if export.name not in families:
                families[export.name] = IOFamilies(
                    EXPORTS_PREFIX, export.name, ["op", "name", "namespace"]
                )
            families[export.name].add_read_write(
                export.read, export.write, [self._name, self._namespace]
            )
        for version_families in families.values():
            yield from version_families


class ClientsCollector(Collector):
    """Collects per-client I/O stats for NFSv4.0 and NFSv4.1 connections.

    The server only exposes per-client stats for those two versions.
    """

    def __init__(self, client_mgr: ClientMgr, name: str, namespace: str):
        self._client_mgr = client_mgr
        self._name = name
        self._namespace = namespace
        self._stats: list[tuple[str, str, BasicStats]] = []

    async def refresh(self) -> None:
        try:
            clients = await self._client_mgr.show_clients()
        except Exception as e:
            logger.warning(f"Failed to get nfs client list: {e}")
            self._stats = []
            return

        stats: list[tuple[str, str, BasicStats]] = []
        for client in clients:
            stats.extend(await self._client_stats(client))
        self._stats = stats

    async def _client_stats(self, client: Client) -> list[tuple[str, str, BasicStats]]:
        out = []
        for protocol, enabled, fetch in (
            (NFS_V40, client.nfsv40, self._client_mgr.get_nfsv40_io),
            (NFS_V41, client.nfsv41, self._client_mgr.get_nfsv41_io),
        ):
            if not enabled:
                continue
            try:
                out.append((protocol, client.client, await fetch(client.client)))
            except Exception as e:
                logger.with_context(clientip=client.client).warning(
                    f"Failed to get {protocol} client stats: {e}"
                )
        return out

    def collect(self) -> Iterator[Metric]:
        families: dict[str, IOFamilies] = {}
        for protocol, address, stats in self._stats:
            read, write = stats.read, stats.write
            if read is None or write is None:
                logger.debug(f"No {protocol} stats for client {address}: {stats.error}")
                read = write = _NO_IO
            if protocol not in families:
                families[protocol] = IOFamilies(
                    CLIENTS_PREFIX, protocol, ["op", "name", "namespace", "clientip"]
                )
            families[protocol].add_read_write(
                read, write, [self._name, self._namespace, address]
            )
        for version_families in families.values():
            yield from version_families
