"""Heartbeat monitoring for nfs-ganesha.

nfs-ganesha publishes a heartbeat signal on the bus while it is healthy and
goes quiet when it is not, so the *absence* of heartbeats is how failure is
normally observed.  ``HeartbeatBroadcaster`` subscribes to that signal and
republishes every heartbeat to any number of watchers.

Delivery to watchers blocks: a watcher whose queue is full holds up the
loop (and therefore every other watcher) until it reads or is removed.
"""

import asyncio
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from nfs_supervisor.core.exceptions import CancellationError, ProbeError
from nfs_supervisor.core.logging import LoggerConfigurator
from nfs_supervisor.core.protocols.bus import BusSignal, SignalBus
from nfs_supervisor.core.rwlock import AsyncRWLock

HEARTBEAT_PATH = "/org/ganesha/nfsd/heartbeat"
HEARTBEAT_INTERFACE = "org.ganesha.nfsd.admin"
HEARTBEAT_MEMBER = "heartbeat"
HEARTBEAT_MATCH = (
    f"type='signal',path='{HEARTBEAT_PATH}',"
    f"interface='{HEARTBEAT_INTERFACE}',member='{HEARTBEAT_MEMBER}'"
)


class BroadcasterState(str, Enum):
    """Lifecycle of a HeartbeatBroadcaster."""

    IDLE = "idle"
    MONITORING = "monitoring"
    STOPPED = "stopped"


@dataclass(eq=False)
class _Watcher:
    status: asyncio.Queue
    errors: asyncio.Queue
    # Set on removal so a delivery blocked on this watcher gives up.
    detached: asyncio.Event = field(default_factory=asyncio.Event)


def decode_heartbeat(signal: BusSignal) -> bool:
    """Extract the alive flag from a heartbeat signal.

    Raises:
        ProbeError: If the first body element is missing or not a bool.
    """
    if not signal.body:
        raise ProbeError("heartbeat signal has an empty body")
    status = signal.body[0]
    if not isinstance(status, bool):
        raise ProbeError(
            f"heartbeat payload must be a bool, got {type(status).__name__}: {status!r}"
        )
    return status


def _is_heartbeat(signal: BusSignal) -> bool:
    return (
        signal.path == HEARTBEAT_PATH
        and signal.interface == HEARTBEAT_INTERFACE
        and signal.member == HEARTBEAT_MEMBER
    )


async def _deliver(queue: asyncio.Queue, item: Any, detached: asyncio.Event) -> bool:
    """Put ``item`` on ``queue``, waiting for space unless the watcher detaches.

    Returns:
        True if the item was queued.
    """
    if detached.is_set():
        return False
    try:
        queue.put_nowait(item)
        return True
    except asyncio.QueueFull:
        pass

    put = asyncio.ensure_future(queue.put(item))
    gone = asyncio.ensure_future(detached.wait())
    try:
        await asyncio.wait({put, gone}, return_when=asyncio.FIRST_COMPLETED)
    finally:
        for task in (put, gone):
            if not task.done():
                task.cancel()
    return put.done() and not put.cancelled()


class HeartbeatBroadcaster:
    """Fans nfs-ganesha heartbeats out to registered watchers.

    A watcher is a pair of queues owned by the consumer: a status queue that
    receives every heartbeat value, and an error queue that receives exactly
    one ``CancellationError`` when monitoring stops.  Watchers are keyed by
    their status queue.
    """

    def __init__(self, bus: SignalBus) -> None:
        """Initialize the broadcaster.

        Args:
            bus: An established bus connection.  The broadcaster does not own
                it and will not disconnect it.
        """
        self._bus = bus
        self._watchers: dict[asyncio.Queue, _Watcher] = {}
        self._lock = AsyncRWLock()
        self._events: asyncio.Queue = asyncio.Queue()
        self._state = BroadcasterState.IDLE
        self.logger = LoggerConfigurator.configure_logger(
            __name__, dimensions={"component": "heartbeat"}
        )

    @property
    def state(self) -> BroadcasterState:
        return self._state

    async def watcher_count(self) -> int:
        async with self._lock.read_lock():
            return len(self._watchers)

    # -- watcher registry --

    async def add_watcher(self, status: asyncio.Queue, errors: asyncio.Queue) -> None:
        """Register a watcher.  Re-adding ``status`` replaces its error queue."""
        async with self._lock.write_lock():
            existing = self._watchers.get(status)
            if existing is not None:
                existing.errors = errors
            else:
                self._watchers[status] = _Watcher(status=status, errors=errors)

    async def remove_watcher(self, status: asyncio.Queue) -> None:
        """Deregister a watcher.  Unknown queues are ignored.

        Once this returns, no later heartbeat is delivered to ``status``.
        """
        # Detach first, under the shared lock, so a broadcast blocked on this
        # watcher releases its read lock and the write below can proceed.
        async with self._lock.read_lock():
            watcher = self._watchers.get(status)
            if watcher is None:
                return
            watcher.detached.set()
        async with self._lock.write_lock():
            if self._watchers.get(status) is watcher:
                del self._watchers[status]

    # -- monitoring loop --

    def _on_signal(self, signal: BusSignal) -> None:
        if _is_heartbeat(signal):
            self._events.put_nowait(signal)

    async def run(self) -> None:
        """Subscribe to heartbeats and broadcast them until cancelled.

        On cancellation the subscription is removed, every registered watcher
        receives one ``CancellationError``, and ``CancelledError`` is re-raised.

        Raises:
            RuntimeError: If the broadcaster is not idle.
            asyncio.CancelledError: When monitoring is cancelled.
            BusCallError: If the subscription cannot be registered.
        """
        if self._state is not BroadcasterState.IDLE:
            raise RuntimeError(f"heartbeat broadcaster cannot run from state {self._state.value}")

        self._bus.add_signal_handler(self._on_signal)
        try:
            await self._bus.add_match(HEARTBEAT_MATCH)
        except asyncio.CancelledError:
            await self._stop()
            raise
        except Exception:
            self._bus.remove_signal_handler(self._on_signal)
            self._state = BroadcasterState.STOPPED
            raise

        self._state = BroadcasterState.MONITORING
        self.logger.info("Monitoring nfs-ganesha heartbeats")

        try:
            while True:
                signal = await self._events.get()
                try:
                    status = decode_heartbeat(signal)
                except ProbeError as e:
                    self.logger.warning(f"Ignoring malformed heartbeat: {e}")
                    continue
                await self._broadcast(status)
        except asyncio.CancelledError:
            await self._stop()
            raise

    async def _broadcast(self, status: bool) -> None:
        async with self._lock.read_lock():
            for watcher in list(self._watchers.values()):
                await _deliver(watcher.status, status, watcher.detached)

    async def _stop(self) -> None:
        self._bus.remove_signal_handler(self._on_signal)
        try:
            await self._bus.remove_match(HEARTBEAT_MATCH)
        except Exception as e:
            self.logger.warning(f"Failed to remove heartbeat match rule: {e}")

        cause = CancellationError("heartbeat monitoring cancelled")
        async with self._lock.read_lock():
            for watcher in list(self._watchers.values()):
                await _deliver(watcher.errors, cause, watcher.detached)

        self._state = BroadcasterState.STOPPED
        self.logger.info("Stopped monitoring nfs-ganesha heartbeats")

    # -- probe --

    async def is_alive(self) -> bool:
        """Wait for the next heartbeat and return its status.

        Returns False if monitoring stops first.  This waits indefinitely;
        callers bound it with a timeout.
        """
        if self._state is BroadcasterState.STOPPED:
            return False
        status: asyncio.Queue = asyncio.Queue(maxsize=1)
        errors: asyncio.Queue = asyncio.Queue(maxsize=1)
        await self.add_watcher(status, errors)
        try:
            got_status = asyncio.ensure_future(status.get())
            got_error = asyncio.ensure_future(errors.get())
            try:
                done, _ = await asyncio.wait(
                    {got_status, got_error}, return_when=asyncio.FIRST_COMPLETED
                )
            finally:
                got_status.cancel()
                got_error.cancel()
            if got_status in done and not got_status.cancelled():
                return got_status.result()
            err: Optional[BaseException] = got_error.result() if got_error in done else None
            self.logger.info(f"Finished watching for nfs-ganesha heartbeats: {err}")
            return False
        finally:
            await self.remove_watcher(status)
