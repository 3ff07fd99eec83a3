"""The system dbus-daemon process.

dbus-daemon fails to start if another, unmanaged process is already bound
to the system bus socket.
"""

import asyncio
import os
from collections.abc import Awaitable, Callable
from typing import Optional

from nfs_supervisor.core.exceptions import ProbeError, StartError
from nfs_supervisor.core.process import ManagedProcess
from nfs_supervisor.core.protocols.bus import SignalBus

DBUS_DAEMON = "/usr/bin/dbus-daemon"
DBUS_UUIDGEN = "/usr/bin/dbus-uuidgen"
DBUS_RUN_DIR = "/run/dbus"

BusConnector = Callable[[], Awaitable[SignalBus]]


async def connect_system_bus() -> SignalBus:
    """Open a new private, authenticated connection to the system bus."""
    from nfs_supervisor.adapters.bus.dbus import DBusConnection

    return await DBusConnection.connect()


class BusDaemon(ManagedProcess):
    """Runs dbus-daemon as the container's system bus."""

    def __init__(
        self,
        path: str = DBUS_DAEMON,
        *,
        uuidgen: str = DBUS_UUIDGEN,
        run_dir: str = DBUS_RUN_DIR,
        connector: Optional[BusConnector] = None,
    ):
        """Initialize the bus daemon.

        Args:
            path: Path to the dbus-daemon executable.
            uuidgen: Path to dbus-uuidgen, used to ensure a machine id exists.
            run_dir: Directory dbus-daemon places its socket in.
            connector: Opens a bus connection for the readiness probe.
        """
        super().__init__(path, ["--system", "--nofork", "--nopidfile"], name="dbus")
        self.uuidgen = uuidgen
        self.run_dir = run_dir
        self._connector = connector or connect_system_bus

    async def prepare(self) -> None:
        """Create the socket directory and make sure a machine id exists."""
        os.makedirs(self.run_dir, mode=0o755, exist_ok=True)

        proc = await asyncio.create_subprocess_exec(self.uuidgen, "--ensure")
        returncode = await proc.wait()
        if returncode != 0:
            raise StartError(self.name, f"{self.uuidgen} --ensure exited with {returncode}")

    async def is_ready(self) -> bool:
        """Return True once a client can connect and complete the handshake.

        Raises:
            ProbeError: If the bus cannot be reached yet.
        """
        try:
            conn = await self._connector()
        except Exception as e:
            raise ProbeError(f"system bus unreachable: {e}") from e
        conn.disconnect()
        return True
