"""Client listing and per-client statistics from nfs-ganesha's ClientMgr."""

from nfs_supervisor.core.protocols.bus import SignalBus
from nfs_supervisor.ganesha.stats import (
    BasicStats,
    Client,
    basic_stats_from_reply,
    clients_from_reply,
)

GANESHA_BUS_NAME = "org.ganesha.nfsd"
CLIENT_MGR_PATH = "/org/ganesha/nfsd/ClientMgr"


class ClientMgr:
    """Handle to nfs-ganesha's ClientMgr bus object.

    Only NFSv4.0 and NFSv4.1 per-client stats are exposed by the server.
    """

    def __init__(self, bus: SignalBus) -> None:
        self._bus = bus

    async def show_clients(self) -> list[Client]:
        """Return every client that has connected since the server started."""
        body = await self._bus.call(
            GANESHA_BUS_NAME,
            CLIENT_MGR_PATH,
            "org.ganesha.nfsd.clientmgr",
            "ShowClients",
        )
        return clients_from_reply(body)

    async def get_nfsv40_io(self, ipaddr: str) -> BasicStats:
        """Return basic I/O stats for a client's NFSv4.0 traffic."""
        return await self._get_basic_stats("GetNFSv40IO", ipaddr)

    async def get_nfsv41_io(self, ipaddr: str) -> BasicStats:
        """Return basic I/O stats for a client's NFSv4.1 traffic."""
        return await self._get_basic_stats("GetNFSv41IO", ipaddr)

    async def _get_basic_stats(self, member: str, ipaddr: str) -> BasicStats:
        body = await self._bus.call(
            GANESHA_BUS_NAME,
            CLIENT_MGR_PATH,
            "org.ganesha.nfsd.clientstats",
            member,
            "s",
            [ipaddr],
        )
        return basic_stats_from_reply(body)
