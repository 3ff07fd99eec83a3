"""Unit tests for the polling readiness gate."""

import asyncio

import pytest

from nfs_supervisor.core.exceptions import ProbeError, ReadinessTimeoutError
from nfs_supervisor.core.readiness import wait_until_ready


class _SequenceProbe:
    """Probe returning canned results in order, then repeating the last one."""

    def __init__(self, *results):
        self._results = list(results)
        self.calls = 0

    async def __call__(self) -> bool:
        self.calls += 1
        result = self._results[min(self.calls, len(self._results)) - 1]
        if isinstance(result, Exception):
            raise result
        return result


def _deadline(seconds: float) -> float:
    return asyncio.get_running_loop().time() + seconds


class TestWaitUntilReady:
    """Tests for wait_until_ready."""

    @pytest.mark.asyncio
    async def test_succeeds_once_probe_returns_true(self):
        probe = _SequenceProbe(False, False, True)
        loop = asyncio.get_running_loop()
        started = loop.time()

        await wait_until_ready(probe, deadline=_deadline(1.0), interval=0.1)

        elapsed = loop.time() - started
        assert probe.calls == 3
        assert 0.2 <= elapsed < 0.6

    @pytest.mark.asyncio
    async def test_never_ready_times_out_at_deadline(self):
        probe = _SequenceProbe(False)
        loop = asyncio.get_running_loop()
        started = loop.time()

        with pytest.raises(ReadinessTimeoutError) as exc_info:
            await wait_until_ready(probe, deadline=_deadline(0.3), interval=0.05, name="dbus")

        elapsed = loop.time() - started
        assert elapsed >= 0.29
        assert elapsed < 1.0
        assert isinstance(exc_info.value, TimeoutError)
        assert exc_info.value.name == "dbus"
        assert "deadline exceeded" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_probe_error_counts_as_not_ready(self):
        probe = _SequenceProbe(ProbeError("bus unreachable"), ProbeError("still"), True)

        await wait_until_ready(probe, deadline=_deadline(1.0), interval=0.01)

        assert probe.calls == 3

    @pytest.mark.asyncio
    async def test_unexpected_probe_error_propagates(self):
        probe = _SequenceProbe(ValueError("bug"))

        with pytest.raises(ValueError, match="bug"):
            await wait_until_ready(probe, deadline=_deadline(1.0), interval=0.01)

    @pytest.mark.asyncio
    async def test_slow_probe_is_cut_off_at_deadline(self):
        cancelled = asyncio.Event()

        async def never_answers() -> bool:
            try:
                await asyncio.sleep(10)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return True

        with pytest.raises(ReadinessTimeoutError):
            await wait_until_ready(never_answers, deadline=_deadline(0.2), interval=0.01)

        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_expired_deadline_fails_without_success(self):
        probe = _SequenceProbe(True)

        with pytest.raises(ReadinessTimeoutError):
            await wait_until_ready(probe, deadline=_deadline(0.0), interval=0.05)

        assert probe.calls == 0

    @pytest.mark.asyncio
    async def test_external_cancellation_aborts_wait(self):
        probe = _SequenceProbe(False)
        task = asyncio.create_task(
            wait_until_ready(probe, deadline=_deadline(10.0), interval=0.01)
        )
        await asyncio.sleep(0.05)

        task.cancel()

        with pytest.raises(asyncio.CancelledError):
            await task
