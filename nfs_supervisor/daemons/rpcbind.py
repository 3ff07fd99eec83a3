"""The rpcbind portmapper process.

nfs-ganesha refuses to start without rpcbind even when only serving NFSv4.
"""

from nfs_supervisor.core.process import ManagedProcess

RPCBIND_DAEMON = "/sbin/rpcbind"


class Portmapper(ManagedProcess):
    """Runs rpcbind in the foreground."""

    def __init__(self, path: str = RPCBIND_DAEMON):
        super().__init__(path, ["-f"], name="rpcbind")
