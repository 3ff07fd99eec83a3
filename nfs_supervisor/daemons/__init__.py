"""The daemons supervised inside the NFS container."""

from nfs_supervisor.daemons.dbus import BusDaemon
from nfs_supervisor.daemons.ganesha import NfsServer
from nfs_supervisor.daemons.rpcbind import Portmapper

__all__ = ["BusDaemon", "NfsServer", "Portmapper"]
