"""Entry point for the NFS container supervisor."""

import asyncio
import signal
import sys

from nfs_supervisor.core.config import load_settings
from nfs_supervisor.core.exceptions import ConfigurationError, SupervisorError
from nfs_supervisor.core.logging import LoggerConfigurator, logger
from nfs_supervisor.orchestrator import Orchestrator


async def serve(orchestrator: Orchestrator) -> None:
    """Run ``orchestrator`` until SIGINT/SIGTERM or a component exits."""
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(sig, stop.set)
    try:
        await orchestrator.run(stop)
    finally:
        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.remove_signal_handler(sig)


def main() -> int:
    """Run the supervisor.

    Returns:
        0 after a graceful shutdown, 1 if configuration or startup fails.
    """
    try:
        settings = load_settings()
    except ConfigurationError as e:
        logger.error(str(e))
        return 1

    LoggerConfigurator.configure_root(settings.LOG_LEVEL)

    try:
        asyncio.run(serve(Orchestrator(settings)))
    except (SupervisorError, TimeoutError) as e:
        logger.error(f"Fatal: {e}")
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
