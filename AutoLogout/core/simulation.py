"""
Session timelines on virtual time.

Runs a real SessionController against a ManualTimeoutClock, a gateway that
answers from a script and a dialog that answers on its own after a delay.
Used by the `simulate` command to show what a given configuration does.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from typing import Callable, Deque, Dict, List, Optional, Sequence

from AutoLogout.core.clock import ManualTimeoutClock
from AutoLogout.core.controller import SessionController
from AutoLogout.core.exceptions import AuthExpired, Unreachable
from AutoLogout.core.interfaces import DialogChoice
from AutoLogout.core.policy import TimeoutPolicy

logger = logging.getLogger(__name__)


@dataclass
class TimelineEntry:
    at: float
    what: str

    def __str__(self) -> str:
        return f"{self.at:8.1f}s  {self.what}"


@dataclass
class Timeline:
    clock: ManualTimeoutClock
    entries: List[TimelineEntry] = field(default_factory=list)

    def record(self, what: str) -> None:
        self.entries.append(TimelineEntry(self.clock.now(), what))

    def lines(self) -> List[str]:
        return [str(e) for e in self.entries]


class ScriptedGateway:
    """
    Session gateway answering from a script.

    Each probe consumes the next answer; the last one repeats. An answer of
    None stands for an unreachable server. A second logout finds the session
    already gone.
    """

    def __init__(self, answers: Sequence[Optional[int]], timeline: Timeline):
        if not answers:
            answers = [0]
        self._answers: Deque[Optional[int]] = deque(answers)
        self._timeline = timeline
        self._logged_out = False
        self.calls: Dict[str, int] = {"get_remaining": 0, "keep_alive": 0, "logout": 0}

    def _next_answer(self) -> Optional[int]:
        if len(self._answers) > 1:
            return self._answers.popleft()
        return self._answers[0]

    async def get_remaining(self) -> int:
        self.calls["get_remaining"] += 1
        if self._logged_out:
            self._timeline.record("probe -> 403")
            raise AuthExpired("Session already ended")
        answer = self._next_answer()
        if answer is None:
            self._timeline.record("probe -> unreachable")
            raise Unreachable("Scripted outage")
        self._timeline.record(f"probe -> {answer}s left")
        return answer

    async def keep_alive(self) -> None:
        self.calls["keep_alive"] += 1
        if self._logged_out:
            self._timeline.record("keep-alive -> 403")
            raise AuthExpired("Session already ended")
        self._timeline.record("keep-alive")

    async def logout(self) -> None:
        self.calls["logout"] += 1
        if self._logged_out:
            self._timeline.record("logout -> 403")
            raise AuthExpired("Session already ended")
        self._logged_out = True
        self._timeline.record("logout")


class ScriptedDialog:
    """Warning dialog whose user answers `answer_after` seconds after it opens."""

    def __init__(self, timeline: Timeline, answer: Optional[DialogChoice] = None, answer_after: float = 0.0):
        self._timeline = timeline
        self._answer = answer
        self._answer_after = answer_after
        self._handles = 0
        self._pending: Optional[tuple] = None
        self.opened = 0

    def open(self, message: str, on_extend: Callable[[], None],
             on_logout: Callable[[], None], on_dismiss: Callable[[], None]) -> int:
        self._handles += 1
        self.opened += 1
        self._timeline.record(f"dialog opened: {message!r}")
        if self._answer is not None:
            callback = {
                DialogChoice.EXTEND: on_extend,
                DialogChoice.LOGOUT: on_logout,
                DialogChoice.DISMISS: on_dismiss,
            }[self._answer]
            self._pending = (self._timeline.clock.now() + self._answer_after, self._handles, callback)
        return self._handles

    def close(self, handle: int) -> None:
        if self._pending is not None and self._pending[1] == handle:
            self._pending = None
        self._timeline.record("dialog closed")

    def answer_due(self) -> Optional[float]:
        return self._pending[0] if self._pending else None

    def answer(self) -> None:
        """Deliver the scripted answer if the dialog is still waiting for one."""
        if self._pending is None:
            return
        _, _, callback = self._pending
        self._pending = None
        self._timeline.record(f"user answers {self._answer.name.lower()}")
        callback()


async def run_simulation(
    policy: TimeoutPolicy,
    answers: Sequence[Optional[int]],
    answer: Optional[DialogChoice] = None,
    answer_after: float = 0.0,
    horizon: float = 24 * 3600.0
) -> Timeline:
    """
    Play a session until it is logged out or `horizon` virtual seconds pass.

    Args:
        policy: Timeout policy under test
        answers: Successive time-left answers of the server (None = outage)
        answer: What the user does when the warning shows (None = nothing)
        answer_after: Seconds between the warning and the user's answer
        horizon: Virtual time at which the simulation stops

    Returns:
        Timeline of everything the session did
    """
    clock = ManualTimeoutClock()
    timeline = Timeline(clock)
    gateway = ScriptedGateway(answers, timeline)
    dialog = ScriptedDialog(timeline, answer, answer_after)

    def navigate(url: str, message: str) -> None:
        timeline.record(f"redirect to {url}" + (f" ({message})" if message else ""))

    controller = SessionController(policy, gateway, dialog=dialog, clock=clock, navigator=navigate)
    timeline.record(f"attached in {'refresh-only' if policy.refresh_only else 'normal'} mode")
    controller.attach()

    try:
        while not controller.snapshot.terminal:
            candidates = [t for t in (clock.next_due(), dialog.answer_due()) if t is not None]
            if not candidates:
                break
            when = min(candidates)
            if when > horizon:
                clock.advance_to(horizon)
                break
            clock.advance_to(when)
            await controller.wait_idle()
            due = dialog.answer_due()
            if due is not None and due <= clock.now():
                dialog.answer()
                await controller.wait_idle()
    finally:
        controller.detach()

    timeline.record(f"finished in state {controller.state.name}")
    logger.debug("Simulation made %s", gateway.calls)
    return timeline
