"""Unit tests for HeartbeatBroadcaster."""

import asyncio

import pytest

from nfs_supervisor.adapters.bus.fake import FakeSignalBus
from nfs_supervisor.core.exceptions import BusCallError, CancellationError, ProbeError
from nfs_supervisor.core.protocols.bus import BusSignal
from nfs_supervisor.ganesha.heartbeat import (
    HEARTBEAT_INTERFACE,
    HEARTBEAT_MATCH,
    HEARTBEAT_MEMBER,
    HEARTBEAT_PATH,
    BroadcasterState,
    HeartbeatBroadcaster,
    decode_heartbeat,
)


def _heartbeat(*body) -> BusSignal:
    return BusSignal(HEARTBEAT_PATH, HEARTBEAT_INTERFACE, HEARTBEAT_MEMBER, tuple(body))


async def _start(bus: FakeSignalBus):
    broadcaster = HeartbeatBroadcaster(bus)
    task = asyncio.create_task(broadcaster.run())
    await asyncio.wait_for(bus.subscribed.wait(), 1)
    return broadcaster, task


async def _stop(task: asyncio.Task) -> None:
    task.cancel()
    with pytest.raises(asyncio.CancelledError):
        await task


async def _drain(queue: asyncio.Queue, n: int) -> list:
    return [await asyncio.wait_for(queue.get(), 1) for _ in range(n)]


async def _wait_for_watchers(broadcaster: HeartbeatBroadcaster, n: int) -> None:
    async with asyncio.timeout(1):
        while await broadcaster.watcher_count() != n:
            await asyncio.sleep(0.005)


# ---------------------------------------------------------------------------
# decode_heartbeat
# ---------------------------------------------------------------------------


class TestDecodeHeartbeat:
    def test_true_and_false(self):
        assert decode_heartbeat(_heartbeat(True)) is True
        assert decode_heartbeat(_heartbeat(False)) is False

    def test_empty_body(self):
        with pytest.raises(ProbeError, match="empty body"):
            decode_heartbeat(_heartbeat())

    def test_non_bool_payload(self):
        with pytest.raises(ProbeError, match="must be a bool"):
            decode_heartbeat(_heartbeat("yes"))

    def test_int_is_not_bool(self):
        with pytest.raises(ProbeError):
            decode_heartbeat(_heartbeat(1))


# ---------------------------------------------------------------------------
# broadcasting
# ---------------------------------------------------------------------------


class TestBroadcast:
    """Tests for fan-out of heartbeats to watchers."""

    @pytest.mark.asyncio
    async def test_every_watcher_sees_every_heartbeat_in_order(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)
        watchers = [(asyncio.Queue(), asyncio.Queue()) for _ in range(3)]
        for status, errors in watchers:
            await broadcaster.add_watcher(status, errors)

        for value in (True, True, False):
            bus.emit(_heartbeat(value))

        for status, _ in watchers:
            assert await _drain(status, 3) == [True, True, False]

        await _stop(task)

    @pytest.mark.asyncio
    async def test_subscribes_with_heartbeat_match_rule(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)

        assert bus.matches == [HEARTBEAT_MATCH]
        assert broadcaster.state is BroadcasterState.MONITORING

        await _stop(task)

    @pytest.mark.asyncio
    async def test_no_watchers_drops_heartbeats(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)

        bus.emit(_heartbeat(True))
        await asyncio.sleep(0.01)

        status = asyncio.Queue()
        await broadcaster.add_watcher(status, asyncio.Queue())
        await asyncio.sleep(0.01)
        assert status.empty()

        await _stop(task)

    @pytest.mark.asyncio
    async def test_removed_watcher_receives_nothing_further(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)
        status = asyncio.Queue()
        await broadcaster.add_watcher(status, asyncio.Queue())

        bus.emit(_heartbeat(True))
        assert await _drain(status, 1) == [True]

        await broadcaster.remove_watcher(status)
        bus.emit(_heartbeat(True))
        await asyncio.sleep(0.01)

        assert status.empty()
        assert await broadcaster.watcher_count() == 0

        await _stop(task)

    @pytest.mark.asyncio
    async def test_removing_unknown_watcher_is_noop(self):
        bus = FakeSignalBus()
        broadcaster = HeartbeatBroadcaster(bus)

        await broadcaster.remove_watcher(asyncio.Queue())

        assert await broadcaster.watcher_count() == 0

    @pytest.mark.asyncio
    async def test_malformed_heartbeat_is_skipped(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)
        status = asyncio.Queue()
        await broadcaster.add_watcher(status, asyncio.Queue())

        bus.emit(_heartbeat("yes"))
        bus.emit(_heartbeat())
        bus.emit(_heartbeat(True))

        assert await _drain(status, 1) == [True]
        await asyncio.sleep(0.01)
        assert status.empty()
        assert broadcaster.state is BroadcasterState.MONITORING

        await _stop(task)

    @pytest.mark.asyncio
    async def test_other_signals_are_ignored(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)
        status = asyncio.Queue()
        await broadcaster.add_watcher(status, asyncio.Queue())

        bus.emit(BusSignal(HEARTBEAT_PATH, HEARTBEAT_INTERFACE, "grace", (True,)))
        bus.emit(BusSignal("/org/ganesha/nfsd/other", HEARTBEAT_INTERFACE, HEARTBEAT_MEMBER, (True,)))
        await asyncio.sleep(0.01)

        assert status.empty()

        await _stop(task)

    @pytest.mark.asyncio
    async def test_blocked_delivery_is_released_by_removal(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)
        stuck = asyncio.Queue(maxsize=1)
        healthy = asyncio.Queue()
        await broadcaster.add_watcher(stuck, asyncio.Queue())
        await broadcaster.add_watcher(healthy, asyncio.Queue())

        bus.emit(_heartbeat(True))
        bus.emit(_heartbeat(False))
        assert await _drain(healthy, 1) == [True]
        # The second heartbeat is now waiting on the full queue.
        await asyncio.sleep(0.02)
        assert healthy.empty()

        await asyncio.wait_for(broadcaster.remove_watcher(stuck), 1)

        assert await _drain(healthy, 1) == [False]
        bus.emit(_heartbeat(True))
        assert await _drain(healthy, 1) == [True]
        assert stuck.qsize() == 1

        await _stop(task)


# ---------------------------------------------------------------------------
# lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    """Tests for starting and cancelling monitoring."""

    @pytest.mark.asyncio
    async def test_cancel_notifies_each_watcher_once(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)
        watchers = [(asyncio.Queue(), asyncio.Queue()) for _ in range(3)]
        for status, errors in watchers:
            await broadcaster.add_watcher(status, errors)

        await _stop(task)

        for _, errors in watchers:
            assert errors.qsize() == 1
            err = errors.get_nowait()
            assert isinstance(err, CancellationError)
            assert "cancelled" in str(err)
        bus.emit(_heartbeat(True))
        await asyncio.sleep(0.01)
        for status, errors in watchers:
            assert status.empty()
            assert errors.empty()
        assert bus.removed_matches == [HEARTBEAT_MATCH]
        assert bus.handlers == []
        assert broadcaster.state is BroadcasterState.STOPPED

    @pytest.mark.asyncio
    async def test_cancel_without_watchers(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)

        await _stop(task)

        assert broadcaster.state is BroadcasterState.STOPPED
        assert bus.matches == []

    @pytest.mark.asyncio
    async def test_readding_watcher_replaces_error_queue(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)
        status = asyncio.Queue()
        first_errors = asyncio.Queue()
        second_errors = asyncio.Queue()

        await broadcaster.add_watcher(status, first_errors)
        await broadcaster.add_watcher(status, second_errors)
        assert await broadcaster.watcher_count() == 1

        await _stop(task)

        assert first_errors.empty()
        assert second_errors.qsize() == 1

    @pytest.mark.asyncio
    async def test_run_twice_is_rejected(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)

        with pytest.raises(RuntimeError):
            await broadcaster.run()

        await _stop(task)

        with pytest.raises(RuntimeError):
            await broadcaster.run()

    @pytest.mark.asyncio
    async def test_subscription_failure_propagates(self):
        bus = FakeSignalBus()
        bus.set_match_error(BusCallError("AddMatch", "org.freedesktop.DBus.Error.AccessDenied"))
        broadcaster = HeartbeatBroadcaster(bus)

        with pytest.raises(BusCallError, match="AccessDenied"):
            await broadcaster.run()

        assert broadcaster.state is BroadcasterState.STOPPED
        assert bus.handlers == []


# ---------------------------------------------------------------------------
# is_alive
# ---------------------------------------------------------------------------


class TestIsAlive:
    """Tests for the single-heartbeat probe."""

    @pytest.mark.asyncio
    async def test_returns_next_heartbeat(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)

        probe = asyncio.create_task(broadcaster.is_alive())
        await _wait_for_watchers(broadcaster, 1)
        bus.emit(_heartbeat(True))

        assert await asyncio.wait_for(probe, 1) is True
        assert await broadcaster.watcher_count() == 0

        await _stop(task)

    @pytest.mark.asyncio
    async def test_reports_not_alive_heartbeat(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)

        probe = asyncio.create_task(broadcaster.is_alive())
        await _wait_for_watchers(broadcaster, 1)
        bus.emit(_heartbeat(False))

        assert await asyncio.wait_for(probe, 1) is False

        await _stop(task)

    @pytest.mark.asyncio
    async def test_false_when_monitoring_stops(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)

        probe = asyncio.create_task(broadcaster.is_alive())
        await _wait_for_watchers(broadcaster, 1)
        await _stop(task)

        assert await asyncio.wait_for(probe, 1) is False
        assert await broadcaster.watcher_count() == 0

    @pytest.mark.asyncio
    async def test_false_once_stopped(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)
        await _stop(task)

        assert await asyncio.wait_for(broadcaster.is_alive(), 1) is False

    @pytest.mark.asyncio
    async def test_timeout_deregisters_watcher(self):
        bus = FakeSignalBus()
        broadcaster, task = await _start(bus)

        with pytest.raises(TimeoutError):
            async with asyncio.timeout(0.05):
                await broadcaster.is_alive()

        assert await broadcaster.watcher_count() == 0

        await _stop(task)
