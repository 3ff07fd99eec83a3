"""Polling readiness gate used during startup."""

import asyncio
from collections.abc import Awaitable, Callable

from nfs_supervisor.core.exceptions import ProbeError, ReadinessTimeoutError
from nfs_supervisor.core.logging import LoggerConfigurator

ReadinessProbe = Callable[[], Awaitable[bool]]

# Probes are expected to be cheap, so poll often and without backoff.  A probe
# that is expensive should introduce its own delay.
POLL_INTERVAL: float = 0.1

logger = LoggerConfigurator.configure_logger(__name__, dimensions={"component": "readiness"})


async def wait_until_ready(
    probe: ReadinessProbe,
    *,
    deadline: float,
    interval: float = POLL_INTERVAL,
    name: str = "dependency",
) -> None:
    """Poll ``probe`` every ``interval`` seconds until it returns True.

    The first poll happens one interval after the call.  A probe still
    running when the deadline passes is cancelled.

    Args:
        probe: Coroutine function returning True once the dependency is usable.
        deadline: Absolute event loop time (``loop.time()``) to give up at.
            Share one deadline across several waits to bound them together.
        interval: Seconds between polls.
        name: Dependency name used in logs and errors.

    Raises:
        ReadinessTimeoutError: If the deadline passes before the probe succeeds.
        asyncio.CancelledError: If the caller is cancelled.
    """
    loop = asyncio.get_running_loop()
    started = loop.time()
    attempts = 0

    try:
        async with asyncio.timeout_at(deadline):
            while True:
                await asyncio.sleep(interval)
                attempts += 1
                try:
                    if await probe():
                        logger.info(
                            f"{name} ready after {loop.time() - started:.2f}s "
                            f"({attempts} attempts)"
                        )
                        return
                except ProbeError as e:
                    logger.debug(f"{name} not ready yet: {e}")
    except TimeoutError as e:
        raise ReadinessTimeoutError(name, loop.time() - started) from e
