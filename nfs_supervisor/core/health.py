"""Health check logic for the health endpoint."""

import asyncio
from collections.abc import Awaitable, Callable

from nfs_supervisor.core.logging import LoggerConfigurator

# How long a single health request waits for a heartbeat.
DEFAULT_HEALTH_TIMEOUT: float = 10.0

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "health"})


class HealthService:
    """Reports the NFS server healthy while it keeps sending heartbeats.

    "Never started" and "stopped heartbeating" look the same from here:
    both are a heartbeat that does not arrive within the timeout.
    """

    def __init__(
        self,
        probe: Callable[[], Awaitable[bool]],
        *,
        timeout: float = DEFAULT_HEALTH_TIMEOUT,
    ) -> None:
        """Initialize the service.

        Args:
            probe: Waits for the next heartbeat and returns its status.
            timeout: Seconds to wait for the probe per check.
        """
        self._probe = probe
        self._timeout = timeout
        self._shutting_down = False

    @property
    def shutting_down(self) -> bool:
        """Whether the supervisor is shutting down."""
        return self._shutting_down

    @shutting_down.setter
    def shutting_down(self, value: bool) -> None:
        self._shutting_down = value

    async def check(self) -> bool:
        """Return True if a heartbeat reporting alive arrives in time."""
        if self._shutting_down:
            return False
        try:
            async with asyncio.timeout(self._timeout):
                return await self._probe()
        except TimeoutError:
            logger.info("Timed out waiting for nfs-ganesha heartbeat")
            return False
