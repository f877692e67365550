"""
Countdown clocks.

`AsyncioTimeoutClock` drives a real browsing context; `ManualTimeoutClock`
keeps virtual time so timelines can be replayed deterministically.
`SessionClock` is the per-context record of the deadline and the pending
handle of each slot.
"""

import asyncio
import heapq
import itertools
import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from AutoLogout.core.interfaces import TimeoutClock, TimerHandle, TimerSlot

logger = logging.getLogger(__name__)


class AsyncioTimeoutClock:
    """TimeoutClock backed by the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time()

    def schedule(
        self,
        slot: TimerSlot,
        delay_seconds: float,
        on_fire: Callable[[], None]
    ) -> asyncio.TimerHandle:
        return self.loop.call_later(max(0.0, delay_seconds), on_fire)

    def cancel(self, handle: TimerHandle) -> None:
        if handle is not None:
            handle.cancel()


@dataclass(order=True)
class ManualTimer:
    """Pending wake-up on a ManualTimeoutClock."""
    due: float
    seq: int
    slot: TimerSlot = field(compare=False)
    on_fire: Callable[[], None] = field(compare=False, repr=False)
    cancelled: bool = field(default=False, compare=False)
    fired: bool = field(default=False, compare=False)


class ManualTimeoutClock:
    """
    TimeoutClock on virtual time.

    Nothing fires until `advance` is called. Timers fire in deadline order,
    ties in scheduling order, and `now()` reads the deadline of the timer
    being fired while its callback runs.
    """

    def __init__(self, start: float = 0.0):
        self._now = start
        self._queue: List[ManualTimer] = []
        self._seq = itertools.count()

    def now(self) -> float:
        return self._now

    def schedule(
        self,
        slot: TimerSlot,
        delay_seconds: float,
        on_fire: Callable[[], None]
    ) -> ManualTimer:
        timer = ManualTimer(
            due=self._now + max(0.0, delay_seconds),
            seq=next(self._seq),
            slot=slot,
            on_fire=on_fire
        )
        heapq.heappush(self._queue, timer)
        return timer

    def cancel(self, handle: TimerHandle) -> None:
        if handle is not None:
            handle.cancelled = True

    def pending(self) -> List[ManualTimer]:
        """Live timers, soonest first."""
        return sorted(t for t in self._queue if not t.cancelled and not t.fired)

    def next_due(self) -> Optional[float]:
        live = self.pending()
        return live[0].due if live else None

    def advance(self, seconds: float) -> int:
        """
        Move virtual time forward, firing every timer due on the way.

        Returns:
            Number of callbacks fired
        """
        target = self._now + seconds
        fired = 0
        while self._queue and self._queue[0].due <= target:
            timer = heapq.heappop(self._queue)
            if timer.cancelled:
                continue
            self._now = timer.due
            timer.fired = True
            timer.on_fire()
            fired += 1
        self._now = target
        return fired

    def advance_to(self, when: float) -> int:
        return self.advance(max(0.0, when - self._now))


class SessionClock:
    """
    Deadline and pending handles of one browsing context.

    Arming a slot always cancels that slot's current handle first, so each
    slot holds at most one pending wake-up.
    """

    def __init__(self, clock: TimeoutClock):
        self._clock = clock
        self._handles: Dict[TimerSlot, TimerHandle] = {}
        self.deadline: Optional[float] = None

    @property
    def clock(self) -> TimeoutClock:
        return self._clock

    def arm(self, slot: TimerSlot, delay_seconds: float, on_fire: Callable[[], None]) -> TimerHandle:
        self.disarm(slot)
        handle = self._clock.schedule(slot, delay_seconds, on_fire)
        self._handles[slot] = handle
        if slot is TimerSlot.MAIN:
            self.deadline = self._clock.now() + delay_seconds
        logger.debug("Armed %s countdown for %ss", slot.value, delay_seconds)
        return handle

    def disarm(self, slot: TimerSlot) -> None:
        handle = self._handles.pop(slot, None)
        if handle is not None:
            self._clock.cancel(handle)
        if slot is TimerSlot.MAIN:
            self.deadline = None

    def disarm_all(self) -> None:
        for slot in list(self._handles):
            self.disarm(slot)
        self.deadline = None

    def fired(self, slot: TimerSlot) -> None:
        """Forget a slot's handle once its wake-up has run."""
        self._handles.pop(slot, None)

    def is_armed(self, slot: TimerSlot) -> bool:
        return slot in self._handles
