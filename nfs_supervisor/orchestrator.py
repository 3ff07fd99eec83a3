"""Startup sequencing and coordinated shutdown of the NFS container."""

import asyncio
from enum import Enum
from typing import Optional

from nfs_supervisor.api.endpoints import (
    HEALTH_ENDPOINT,
    METRICS_ENDPOINT,
    health_handler,
    metrics_handler,
)
from nfs_supervisor.api.server import HttpServer
from nfs_supervisor.core.config import Settings
from nfs_supervisor.core.exceptions import StartError
from nfs_supervisor.core.health import HealthService
from nfs_supervisor.core.logging import LoggerConfigurator
from nfs_supervisor.core.process import ExitFuture, ManagedProcess
from nfs_supervisor.core.protocols.bus import SignalBus
from nfs_supervisor.core.readiness import POLL_INTERVAL, ReadinessProbe, wait_until_ready
from nfs_supervisor.daemons.dbus import BusConnector, BusDaemon, connect_system_bus
from nfs_supervisor.daemons.ganesha import NfsServer
from nfs_supervisor.daemons.rpcbind import Portmapper
from nfs_supervisor.ganesha.heartbeat import HeartbeatBroadcaster

SERVER_NAME = "StorageOS NFS"


class SupervisorState(str, Enum):
    """Lifecycle of the supervisor."""

    STARTING = "starting"
    BUS_READY = "bus_ready"
    NFS_STARTING = "nfs_starting"
    NFS_READY = "nfs_ready"
    SERVING = "serving"
    SHUTTING_DOWN = "shutting_down"
    STOPPED = "stopped"


class Orchestrator:
    """Starts rpcbind, dbus and nfs-ganesha in order and stops them together.

    Startup waits are bounded by one shared deadline and any failure is
    fatal.  Once serving, the first of a stop request or any component
    exiting triggers shutdown.  Shutdown is best-effort: every component is
    closed regardless of errors in the others.
    """

    def __init__(
        self,
        settings: Settings,
        *,
        portmapper: Optional[ManagedProcess] = None,
        bus_daemon: Optional[ManagedProcess] = None,
        nfs_server: Optional[ManagedProcess] = None,
        bus_probe: Optional[ReadinessProbe] = None,
        connect_bus: Optional[BusConnector] = None,
        http_server: Optional[HttpServer] = None,
        poll_interval: float = POLL_INTERVAL,
    ):
        """Initialize the orchestrator.  Components default to the real daemons.

        Args:
            settings: Runtime settings.
            portmapper: The rpcbind process.
            bus_daemon: The dbus-daemon process.
            nfs_server: The nfs-ganesha process.
            bus_probe: Readiness probe for the bus.  Defaults to the bus
                daemon's handshake probe.
            connect_bus: Opens the supervisor's own bus connection.
            http_server: Server for the index, health and metrics endpoints.
            poll_interval: Seconds between readiness probes.
        """
        self.settings = settings
        self.portmapper = portmapper or Portmapper()
        self.bus_daemon = bus_daemon or BusDaemon()
        self.nfs_server = nfs_server or NfsServer(settings.GANESHA_CONFIGFILE)
        if bus_probe is None:
            if not isinstance(self.bus_daemon, BusDaemon):
                raise ValueError("bus_probe is required for a custom bus daemon")
            bus_probe = self.bus_daemon.is_ready
        self._bus_probe = bus_probe
        self._connect_bus = connect_bus or connect_system_bus
        self.http_server = http_server or HttpServer(
            settings.listen_host, settings.listen_port, SERVER_NAME
        )
        self._poll_interval = poll_interval

        self.state = SupervisorState.STARTING
        self.bus: Optional[SignalBus] = None
        self.broadcaster: Optional[HeartbeatBroadcaster] = None
        self.health: Optional[HealthService] = None
        self._heartbeat_task: Optional[asyncio.Task] = None
        self._exits: dict[str, ExitFuture] = {}
        self._http_started = False
        self.logger = LoggerConfigurator.configure_logger(
            __name__, dimensions={"component": "orchestrator"}
        )

    def _set_state(self, state: SupervisorState) -> None:
        self.logger.debug(f"State {self.state.value} -> {state.value}")
        self.state = state

    async def run(self, stop: asyncio.Event) -> None:
        """Start everything, serve until stopped or a component exits, then shut down.

        A stop request that arrives during startup abandons the startup waits
        and shuts down whatever was already launched; that is not an error.

        Args:
            stop: Set to request shutdown.

        Raises:
            StartError: If a component cannot be launched.
            ReadinessTimeoutError: If startup does not finish before the deadline.
        """
        deadline = asyncio.get_running_loop().time() + self.settings.STARTUP_TIMEOUT
        startup = asyncio.create_task(self._start(deadline), name="startup")
        stop_wait = asyncio.ensure_future(stop.wait())
        try:
            await asyncio.wait({startup, stop_wait}, return_when=asyncio.FIRST_COMPLETED)
            if not startup.done():
                self.logger.info("Shutdown requested during startup")
                await self._cancel_startup(startup)
                await self._shutdown()
                return
            startup.result()
        except BaseException as e:
            await self._cancel_startup(startup)
            self.logger.error(f"Startup failed: {e!r}")
            await self._shutdown()
            raise
        finally:
            stop_wait.cancel()

        try:
            await self._wait_for_stop(stop)
        finally:
            await self._shutdown()

    # -- startup --

    async def _start(self, deadline: float) -> None:
        self._exits["rpcbind"] = await self.portmapper.run()
        self._exits["dbus"] = await self.bus_daemon.run()

        await wait_until_ready(
            self._bus_probe, deadline=deadline, interval=self._poll_interval, name="dbus"
        )
        self._set_state(SupervisorState.BUS_READY)

        try:
            self.bus = await self._connect_bus()
        except Exception as e:
            raise StartError("bus connection", str(e)) from e
        self.broadcaster = HeartbeatBroadcaster(self.bus)

        self._set_state(SupervisorState.NFS_STARTING)
        self._exits["nfs-ganesha"] = await self.nfs_server.run()

        # Not bound to the startup deadline: monitoring runs for the life of the server.
        self._heartbeat_task = asyncio.create_task(
            self.broadcaster.run(), name="heartbeat-monitor"
        )
        self._heartbeat_task.add_done_callback(self._on_heartbeat_done)

        await wait_until_ready(
            self.broadcaster.is_alive,
            deadline=deadline,
            interval=self._poll_interval,
            name="nfs-ganesha",
        )
        self._set_state(SupervisorState.NFS_READY)

        await self._start_http()
        self._set_state(SupervisorState.SERVING)

    @staticmethod
    async def _cancel_startup(startup: asyncio.Task) -> None:
        if startup.done():
            return
        startup.cancel()
        await asyncio.wait({startup})
        # Retrieve the outcome so a failure racing the cancel is not reported as unhandled.
        if not startup.cancelled():
            startup.exception()

    async def _start_http(self) -> None:
        srv = self.http_server
        srv.register_handler("Index", "/", srv.index_handler)

        self.health = HealthService(self.broadcaster.is_alive, timeout=self.settings.HEALTH_TIMEOUT)
        srv.register_handler("Health", HEALTH_ENDPOINT, health_handler(self.health))

        if not self.settings.DISABLE_METRICS:
            from nfs_supervisor.metrics.service import PrometheusMetricsService

            metrics = PrometheusMetricsService(
                self.bus, self.settings.NAME, self.settings.NAMESPACE
            )
            srv.register_handler("Metrics", METRICS_ENDPOINT, metrics_handler(metrics))
            self.logger.info(
                "Enabling prometheus endpoint on "
                f"http://{self.settings.LISTEN_ADDR}{METRICS_ENDPOINT}"
            )

        self._exits["http server"] = await srv.run()
        self._http_started = True

    def _on_heartbeat_done(self, task: asyncio.Task) -> None:
        if task.cancelled():
            return
        err = task.exception()
        if err is not None:
            self.logger.error(f"Heartbeat monitoring failed: {err}")

    # -- steady state --

    async def _wait_for_stop(self, stop: asyncio.Event) -> None:
        stop_wait = asyncio.ensure_future(stop.wait())
        sources: dict[asyncio.Future, str] = {stop_wait: "stop"}
        sources.update({fut: name for name, fut in self._exits.items()})
        try:
            done, _ = await asyncio.wait(sources, return_when=asyncio.FIRST_COMPLETED)
        finally:
            stop_wait.cancel()

        # Everything observed is reported; the shutdown that follows is the same.
        for fut in done:
            name = sources[fut]
            if name == "stop":
                self.logger.info("Shutdown requested")
            elif fut.result() is None:
                self.logger.info(f"{name} stopped")
            else:
                self.logger.warning(f"{name} stopped: {fut.result()}")

    # -- shutdown --

    async def _shutdown(self) -> None:
        self._set_state(SupervisorState.SHUTTING_DOWN)
        if self.health is not None:
            self.health.shutting_down = True
        deadline = asyncio.get_running_loop().time() + self.settings.SHUTDOWN_TIMEOUT

        if self._heartbeat_task is not None:
            self._heartbeat_task.cancel()
            await asyncio.wait({self._heartbeat_task}, timeout=self._remaining(deadline))
            if not self._heartbeat_task.done():
                self.logger.warning(
                    "Heartbeat monitoring did not stop before the shutdown deadline"
                )

        await self._close_process(self.nfs_server, "nfs-ganesha", deadline)
        await self._close_http(deadline)
        await self._close_process(self.portmapper, "rpcbind", deadline)

        if self.bus is not None:
            try:
                self.bus.disconnect()
            except Exception as e:
                self.logger.warning(f"Error disconnecting from bus: {e}")

        await self._close_process(self.bus_daemon, "dbus", deadline)

        self._set_state(SupervisorState.STOPPED)
        self.logger.info("Graceful shutdown completed")

    @staticmethod
    def _remaining(deadline: float) -> float:
        return max(0.0, deadline - asyncio.get_running_loop().time())

    async def _close_process(self, process: ManagedProcess, name: str, deadline: float) -> None:
        exited = self._exits.get(name)
        if exited is None:
            return
        try:
            process.close()
            async with asyncio.timeout_at(deadline):
                await asyncio.shield(exited)
        except TimeoutError:
            self.logger.warning(f"{name} did not exit before the shutdown deadline")
        except Exception as e:
            self.logger.warning(f"Error stopping {name}: {e}")

    async def _close_http(self, deadline: float) -> None:
        if not self._http_started:
            return
        try:
            async with asyncio.timeout_at(deadline):
                await self.http_server.close()
        except TimeoutError:
            self.logger.warning("http server did not stop before the shutdown deadline")
        except Exception as e:
            self.logger.warning(f"Error shutting down http server: {e}")
