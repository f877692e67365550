"""
Unit tests for the countdown clocks and the session probe.
"""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest

from AutoLogout.core.clock import AsyncioTimeoutClock, ManualTimeoutClock, SessionClock
from AutoLogout.core.exceptions import AuthExpired, Unreachable
from AutoLogout.core.interfaces import RemainingTime, SessionGateway, TimeoutClock, TimerSlot
from AutoLogout.core.probe import SessionTimeProbe


class TestManualTimeoutClock:
    """Tests for virtual time."""

    def test_fires_in_deadline_order(self, clock):
        fired = []
        clock.schedule(TimerSlot.PADDING, 10, lambda: fired.append(("b", clock.now())))
        clock.schedule(TimerSlot.MAIN, 5, lambda: fired.append(("a", clock.now())))
        clock.schedule(TimerSlot.MAIN, 30, lambda: fired.append(("c", clock.now())))

        assert clock.advance(20) == 2
        assert fired == [("a", 5), ("b", 10)]
        assert clock.now() == 20
        assert clock.next_due() == 30

    def test_ties_fire_in_scheduling_order(self, clock):
        fired = []
        clock.schedule(TimerSlot.MAIN, 5, lambda: fired.append(1))
        clock.schedule(TimerSlot.PADDING, 5, lambda: fired.append(2))
        clock.advance(5)
        assert fired == [1, 2]

    def test_cancel(self, clock):
        fired = []
        handle = clock.schedule(TimerSlot.MAIN, 5, lambda: fired.append(1))
        clock.cancel(handle)
        clock.cancel(None)
        assert clock.advance(10) == 0
        assert fired == []
        assert clock.pending() == []

    def test_timer_scheduled_from_callback(self, clock):
        fired = []

        def first():
            fired.append(clock.now())
            clock.schedule(TimerSlot.MAIN, 3, lambda: fired.append(clock.now()))

        clock.schedule(TimerSlot.MAIN, 2, first)
        clock.advance(10)
        assert fired == [2, 5]

    def test_advance_to(self):
        clock = ManualTimeoutClock(start=100.0)
        clock.advance_to(90)
        assert clock.now() == 100.0
        clock.advance_to(150)
        assert clock.now() == 150.0

    def test_satisfies_protocol(self, clock):
        assert isinstance(clock, TimeoutClock)
        assert isinstance(AsyncioTimeoutClock(), TimeoutClock)


class TestSessionClock:
    """Tests for per-context deadlines."""

    def test_arm_replaces_pending_handle(self, clock):
        fired = []
        session_clock = SessionClock(clock)
        session_clock.arm(TimerSlot.MAIN, 60, lambda: fired.append("old"))
        session_clock.arm(TimerSlot.MAIN, 30, lambda: fired.append("new"))

        assert session_clock.deadline == 30
        assert len(clock.pending()) == 1
        clock.advance(100)
        assert fired == ["new"]

    def test_disarm(self, clock):
        session_clock = SessionClock(clock)
        session_clock.arm(TimerSlot.MAIN, 60, lambda: None)
        session_clock.arm(TimerSlot.PADDING, 10, lambda: None)

        session_clock.disarm(TimerSlot.PADDING)
        assert session_clock.is_armed(TimerSlot.MAIN)
        assert not session_clock.is_armed(TimerSlot.PADDING)
        assert session_clock.deadline == 60

        session_clock.disarm_all()
        assert session_clock.deadline is None
        assert clock.pending() == []

    def test_fired_forgets_handle(self, clock):
        session_clock = SessionClock(clock)
        session_clock.arm(TimerSlot.PADDING, 10, lambda: session_clock.fired(TimerSlot.PADDING))
        clock.advance(10)
        assert not session_clock.is_armed(TimerSlot.PADDING)

    def test_uses_clock_reading(self):
        inner = MagicMock()
        inner.now.return_value = 1000.0
        session_clock = SessionClock(inner)
        session_clock.arm(TimerSlot.MAIN, 60, lambda: None)
        assert session_clock.deadline == 1060.0
        inner.schedule.assert_called_once()


class TestAsyncioTimeoutClock:
    """Tests for the event loop clock."""

    @pytest.mark.asyncio
    async def test_fires_and_cancels(self):
        clock = AsyncioTimeoutClock()
        fired = asyncio.Event()
        cancelled = []

        clock.schedule(TimerSlot.MAIN, 0.01, fired.set)
        handle = clock.schedule(TimerSlot.PADDING, 0.01, lambda: cancelled.append(1))
        clock.cancel(handle)

        await asyncio.wait_for(fired.wait(), timeout=1.0)
        await asyncio.sleep(0.02)
        assert cancelled == []

    @pytest.mark.asyncio
    async def test_now_follows_loop_time(self):
        clock = AsyncioTimeoutClock()
        assert clock.now() == pytest.approx(asyncio.get_running_loop().time(), abs=0.1)


class TestSessionTimeProbe:
    """Tests for the remaining-time lookup."""

    @pytest.mark.asyncio
    async def test_returns_remaining_time(self):
        gateway = AsyncMock(spec=SessionGateway)
        gateway.get_remaining.return_value = 42
        remaining = await SessionTimeProbe(gateway).get_remaining()
        assert remaining == RemainingTime(42)
        assert not remaining.expired

    @pytest.mark.asyncio
    async def test_negative_clamps_to_zero(self):
        gateway = AsyncMock(spec=SessionGateway)
        gateway.get_remaining.return_value = -7
        remaining = await SessionTimeProbe(gateway).get_remaining()
        assert remaining.seconds_left == 0
        assert remaining.expired

    @pytest.mark.asyncio
    async def test_never_caches(self):
        gateway = AsyncMock(spec=SessionGateway)
        gateway.get_remaining.side_effect = [10, 20]
        probe = SessionTimeProbe(gateway)
        assert (await probe.get_remaining()).seconds_left == 10
        assert (await probe.get_remaining()).seconds_left == 20
        assert gateway.get_remaining.await_count == 2

    @pytest.mark.asyncio
    async def test_malformed_answer(self):
        gateway = AsyncMock(spec=SessionGateway)
        gateway.get_remaining.return_value = "soon"
        with pytest.raises(Unreachable):
            await SessionTimeProbe(gateway).get_remaining()

    @pytest.mark.asyncio
    async def test_auth_expired_propagates(self):
        gateway = AsyncMock(spec=SessionGateway)
        gateway.get_remaining.side_effect = AuthExpired("403")
        with pytest.raises(AuthExpired):
            await SessionTimeProbe(gateway).get_remaining()
