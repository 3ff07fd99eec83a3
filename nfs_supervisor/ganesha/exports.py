"""Per-export statistics from nfs-ganesha's ExportMgr."""

from nfs_supervisor.core.protocols.bus import SignalBus
from nfs_supervisor.ganesha.clients import GANESHA_BUS_NAME
from nfs_supervisor.ganesha.stats import ExportIOStatsList, export_stats_from_reply

EXPORT_MGR_PATH = "/org/ganesha/nfsd/ExportMgr"


class ExportMgr:
    """Handle to nfs-ganesha's ExportMgr bus object."""

    def __init__(self, bus: SignalBus) -> None:
        self._bus = bus

    async def get_io_stats(self) -> ExportIOStatsList:
        """Return basic I/O stats for all exports.

        The server returns one record per protocol used to access an export,
        so a single export may appear several times with the same id.
        """
        body = await self._bus.call(
            GANESHA_BUS_NAME,
            EXPORT_MGR_PATH,
            "org.ganesha.nfsd.exportstats",
            "GetNFSIO",
        )
        return export_stats_from_reply(body)
