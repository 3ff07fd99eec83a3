"""Lifecycle wrapper for a single supervised executable."""

import asyncio
import signal
from typing import Optional

from nfs_supervisor.core.exceptions import StartError, SubprocessExitError
from nfs_supervisor.core.logging import LoggerConfigurator

# Resolves to None on clean exit, or to the SubprocessExitError on abnormal exit.
ExitFuture = asyncio.Future


class ManagedProcess:
    """Runs one external executable and reports its exit.

    The process's stdout/stderr are inherited from the supervisor so daemon
    output is forwarded to the container log unmodified.
    """

    def __init__(self, path: str, args: list[str], *, name: Optional[str] = None):
        """Initialize the process wrapper.  Nothing is launched yet.

        Args:
            path: Absolute path to the executable.
            args: Arguments, not including the executable itself.
            name: Name used in logs and errors.  Defaults to the path.
        """
        self.path = path
        self.args = list(args)
        self.name = name or path
        self.logger = LoggerConfigurator.configure_logger(
            __name__, dimensions={"component": self.name}
        )
        self._process: Optional[asyncio.subprocess.Process] = None
        self._watcher: Optional[asyncio.Task] = None

    @property
    def pid(self) -> Optional[int]:
        return self._process.pid if self._process else None

    @property
    def returncode(self) -> Optional[int]:
        return self._process.returncode if self._process else None

    @property
    def running(self) -> bool:
        return self._process is not None and self._process.returncode is None

    async def prepare(self) -> None:
        """Prepare the system before launch.  No-op unless overridden."""

    async def run(self) -> ExitFuture:
        """Launch the process.

        Returns:
            A future that resolves exactly once when the process exits: to
            ``None`` for a clean exit, or to a ``SubprocessExitError``.

        Raises:
            StartError: If preparation fails or the executable cannot be launched.
            RuntimeError: If this instance already owns a running process.
        """
        if self.running:
            raise RuntimeError(f"{self.name} is already running")

        try:
            await self.prepare()
        except OSError as e:
            raise StartError(self.name, f"preparation failed: {e}") from e

        try:
            self._process = await asyncio.create_subprocess_exec(self.path, *self.args)
        except OSError as e:
            raise StartError(self.name, str(e)) from e

        self.logger.info(f"Started {self.path} (pid {self._process.pid})")

        exited: ExitFuture = asyncio.get_running_loop().create_future()
        self._watcher = asyncio.create_task(
            self._wait(self._process, exited), name=f"{self.name}-exit-watcher"
        )
        return exited

    async def _wait(self, process: asyncio.subprocess.Process, exited: ExitFuture) -> None:
        returncode = await process.wait()
        if exited.done():
            return
        if returncode == 0:
            self.logger.info("Process exited cleanly")
            exited.set_result(None)
        else:
            err = SubprocessExitError(self.name, returncode)
            self.logger.warning(str(err))
            exited.set_result(err)

    def close(self) -> None:
        """Send SIGINT to the process if it is running.

        Does not wait for exit; observe the future returned by ``run()``.
        Calling this when nothing is running is a no-op.
        """
        if not self.running:
            return
        try:
            self._process.send_signal(signal.SIGINT)
        except ProcessLookupError:
            # Exited between the returncode check and the signal.
            return
        self.logger.info("Sent interrupt")
