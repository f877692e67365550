"""
Session-timeout state machine as a pure transition function.

`step(snapshot, event, policy)` returns the next snapshot and the list of
side effects the controller has to carry out, in order. Nothing here touches
a timer, the network or a dialog.
"""

from dataclasses import dataclass, field, replace
from enum import Enum, auto
from typing import List, Optional, Tuple, Union

from AutoLogout.core.interfaces import DialogChoice, TimerSlot
from AutoLogout.core.policy import TimeoutPolicy


class SessionState(Enum):
    """Phases of one browsing context."""
    ACTIVE = auto()
    AWAITING_PROBE = auto()
    WARNING_OPEN = auto()
    CONFIRMING_LOGOUT = auto()
    LOGGED_OUT = auto()
    REFRESH_ONLY_IDLE = auto()


class DialogState(Enum):
    CLOSED = auto()
    OPEN = auto()


class Call(Enum):
    """Server round trips; at most one is in flight per context."""
    PROBE = "probe"
    KEEP_ALIVE = "keep_alive"
    LOGOUT = "logout"


@dataclass(frozen=True)
class Snapshot:
    state: SessionState
    in_flight: Optional[Call] = None
    dialog: DialogState = DialogState.CLOSED

    @property
    def terminal(self) -> bool:
        return self.state is SessionState.LOGGED_OUT


# Events

@dataclass(frozen=True)
class Attached:
    pass


@dataclass(frozen=True)
class TimerFired:
    slot: TimerSlot


@dataclass(frozen=True)
class ProbeSucceeded:
    seconds_left: int


@dataclass(frozen=True)
class CallSucceeded:
    call: Call


@dataclass(frozen=True)
class CallFailed:
    call: Call
    auth_expired: bool


@dataclass(frozen=True)
class UserChose:
    choice: DialogChoice


Event = Union[Attached, TimerFired, ProbeSucceeded, CallSucceeded, CallFailed, UserChose]


# Effects

@dataclass(frozen=True)
class ArmTimer:
    slot: TimerSlot
    seconds: float


@dataclass(frozen=True)
class CancelTimer:
    slot: TimerSlot


@dataclass(frozen=True)
class CancelAllTimers:
    pass


@dataclass(frozen=True)
class Invoke:
    call: Call


@dataclass(frozen=True)
class OpenDialog:
    message: str


@dataclass(frozen=True)
class CloseDialog:
    pass


@dataclass(frozen=True)
class Redirect:
    url: str
    message: str = ""


Effect = Union[ArmTimer, CancelTimer, CancelAllTimers, Invoke, OpenDialog, CloseDialog, Redirect]


@dataclass(frozen=True)
class Transition:
    snapshot: Snapshot
    effects: List[Effect] = field(default_factory=list)

    @property
    def state(self) -> SessionState:
        return self.snapshot.state


def initial_snapshot() -> Snapshot:
    """Snapshot of a context that has not been attached yet."""
    return Snapshot(state=SessionState.ACTIVE)


def step(snapshot: Snapshot, event: Event, policy: TimeoutPolicy) -> Transition:
    """Apply one event. Events that do not apply leave the snapshot as is."""
    if snapshot.terminal:
        return Transition(snapshot)

    if isinstance(event, Attached):
        return _on_attached(policy)
    if isinstance(event, TimerFired):
        return _on_timer(snapshot, event.slot, policy)
    if isinstance(event, ProbeSucceeded):
        return _on_probe(snapshot, max(0, event.seconds_left), policy)
    if isinstance(event, CallSucceeded):
        return _on_call_succeeded(snapshot, event.call, policy)
    if isinstance(event, CallFailed):
        return _on_call_failed(snapshot, event, policy)
    if isinstance(event, UserChose):
        return _on_choice(snapshot, event.choice, policy)
    return Transition(snapshot)


def _on_attached(policy: TimeoutPolicy) -> Transition:
    state = SessionState.REFRESH_ONLY_IDLE if policy.refresh_only else SessionState.ACTIVE
    return Transition(
        Snapshot(state=state),
        [ArmTimer(TimerSlot.MAIN, policy.idle_timeout_seconds)]
    )


def _on_timer(snapshot: Snapshot, slot: TimerSlot, policy: TimeoutPolicy) -> Transition:
    state = snapshot.state

    if slot is TimerSlot.MAIN:
        if snapshot.in_flight is not None:
            return Transition(snapshot)
        if state is SessionState.ACTIVE:
            return Transition(
                replace(snapshot, state=SessionState.AWAITING_PROBE, in_flight=Call.PROBE),
                [ArmTimer(TimerSlot.PADDING, policy.warning_padding_seconds), Invoke(Call.PROBE)]
            )
        if state is SessionState.REFRESH_ONLY_IDLE:
            return Transition(
                replace(snapshot, in_flight=Call.KEEP_ALIVE),
                [Invoke(Call.KEEP_ALIVE)]
            )
        return Transition(snapshot)

    # Padding countdown: recheck once before logging out, another tab may
    # have reset the session meanwhile.
    if state is SessionState.WARNING_OPEN:
        return Transition(
            replace(
                snapshot,
                state=SessionState.CONFIRMING_LOGOUT,
                in_flight=Call.PROBE,
                dialog=DialogState.CLOSED
            ),
            [CloseDialog(), Invoke(Call.PROBE)]
        )
    if state is SessionState.AWAITING_PROBE:
        # The probe still in flight serves as the recheck.
        return Transition(replace(snapshot, state=SessionState.CONFIRMING_LOGOUT))
    return Transition(snapshot)


def _on_probe(snapshot: Snapshot, seconds_left: int, policy: TimeoutPolicy) -> Transition:
    if snapshot.in_flight is not Call.PROBE:
        return Transition(snapshot)
    settled = replace(snapshot, in_flight=None)

    if seconds_left > 0:
        return _resume(settled, seconds_left)

    if snapshot.state is SessionState.AWAITING_PROBE:
        if policy.skip_dialog:
            return _logout(settled, policy, [CancelTimer(TimerSlot.PADDING)])
        return Transition(
            replace(settled, state=SessionState.WARNING_OPEN, dialog=DialogState.OPEN),
            [OpenDialog(policy.warning_message)]
        )

    if snapshot.state is SessionState.CONFIRMING_LOGOUT:
        return _logout(settled, policy)

    return Transition(snapshot)


def _on_call_succeeded(snapshot: Snapshot, call: Call, policy: TimeoutPolicy) -> Transition:
    if snapshot.in_flight is not call:
        return Transition(snapshot)
    settled = replace(snapshot, in_flight=None)

    if call is Call.KEEP_ALIVE:
        return Transition(settled, [ArmTimer(TimerSlot.MAIN, policy.idle_timeout_seconds)])
    if call is Call.LOGOUT:
        return _logged_out(policy.redirect_url, policy.inactivity_message)
    return Transition(snapshot)


def _on_call_failed(snapshot: Snapshot, event: CallFailed, policy: TimeoutPolicy) -> Transition:
    if snapshot.in_flight is not event.call:
        return Transition(snapshot)
    if event.auth_expired:
        return _logged_out(policy.redirect_url, policy.inactivity_message, close_dialog=snapshot.dialog)

    settled = replace(snapshot, in_flight=None)
    call = event.call

    if call is Call.PROBE:
        if snapshot.state is SessionState.CONFIRMING_LOGOUT:
            return _logout(settled, policy)
        # Silent; the next natural cycle retries.
        return _resume(settled, policy.idle_timeout_seconds)

    if call is Call.KEEP_ALIVE:
        return Transition(settled, [ArmTimer(TimerSlot.MAIN, policy.idle_timeout_seconds)])

    # The user has already left; the server session lapses on its own.
    return _logged_out(policy.redirect_url, policy.inactivity_message)


def _on_choice(snapshot: Snapshot, choice: DialogChoice, policy: TimeoutPolicy) -> Transition:
    if snapshot.state is not SessionState.WARNING_OPEN:
        return Transition(snapshot)
    closed = replace(snapshot, dialog=DialogState.CLOSED)

    if choice is DialogChoice.EXTEND:
        return Transition(
            replace(closed, state=SessionState.ACTIVE, in_flight=Call.KEEP_ALIVE),
            [CancelTimer(TimerSlot.PADDING), CloseDialog(), Invoke(Call.KEEP_ALIVE)]
        )
    return _logout(closed, policy, [CancelTimer(TimerSlot.PADDING), CloseDialog()])


def _resume(snapshot: Snapshot, seconds: int) -> Transition:
    effects: List[Effect] = [CancelTimer(TimerSlot.PADDING)]
    if snapshot.dialog is DialogState.OPEN:
        effects.append(CloseDialog())
    effects.append(ArmTimer(TimerSlot.MAIN, seconds))
    return Transition(
        replace(snapshot, state=SessionState.ACTIVE, dialog=DialogState.CLOSED),
        effects
    )


def _logout(snapshot: Snapshot, policy: TimeoutPolicy, before: Optional[List[Effect]] = None) -> Transition:
    effects = list(before or [])
    if policy.use_alt_logout_method:
        done = _logged_out(policy.alt_logout_url, policy.inactivity_message)
        return Transition(done.snapshot, effects + done.effects)
    effects.append(Invoke(Call.LOGOUT))
    return Transition(
        replace(snapshot, state=SessionState.CONFIRMING_LOGOUT, in_flight=Call.LOGOUT),
        effects
    )


def _logged_out(url: str, message: str, close_dialog: DialogState = DialogState.CLOSED) -> Transition:
    effects: List[Effect] = [CancelAllTimers()]
    if close_dialog is DialogState.OPEN:
        effects.append(CloseDialog())
    effects.append(Redirect(url, message))
    return Transition(Snapshot(state=SessionState.LOGGED_OUT), effects)
