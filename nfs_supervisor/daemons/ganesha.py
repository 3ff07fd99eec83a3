"""The nfs-ganesha server process.

The system bus must be running before the server starts: ganesha
registers its admin, client and export objects on it, and its heartbeat
is the only readiness signal it gives.
"""

from nfs_supervisor.core.process import ManagedProcess

NFS_DAEMON = "/usr/bin/ganesha.nfsd"


class NfsServer(ManagedProcess):
    """Runs ganesha.nfsd in the foreground, logging to stdout."""

    def __init__(self, config_file: str, path: str = NFS_DAEMON):
        """Initialize the server process.

        Args:
            config_file: Path to the ganesha configuration file.
            path: Path to the ganesha.nfsd executable.
        """
        self.config_file = config_file
        super().__init__(path, ["-F", "-f", config_file, "-L", "/dev/stdout"], name="nfs-ganesha")
