"""
Session controller: runs the state machine for one browsing context.

The controller owns the context's SessionClock, the warning dialog handle and
the single in-flight server call. Every event goes through `machine.step`;
the controller only carries out the returned effects and feeds the outcome
of each server call back in as a new event.
"""

import asyncio
import logging
from collections import deque
from typing import Deque, Optional

from AutoLogout.core.clock import AsyncioTimeoutClock, SessionClock
from AutoLogout.core.exceptions import AuthExpired, ConfigInvalid, Unreachable
from AutoLogout.core.interfaces import (
    DialogChoice,
    DialogHandle,
    Navigator,
    SessionGateway,
    TimeoutClock,
    TimerSlot,
    WarningDialog,
)
from AutoLogout.core.machine import (
    ArmTimer,
    Attached,
    Call,
    CallFailed,
    CallSucceeded,
    CancelAllTimers,
    CancelTimer,
    CloseDialog,
    Effect,
    Event,
    Invoke,
    OpenDialog,
    ProbeSucceeded,
    Redirect,
    SessionState,
    Snapshot,
    TimerFired,
    UserChose,
    initial_snapshot,
    step,
)
from AutoLogout.core.policy import TimeoutPolicy
from AutoLogout.core.probe import SessionTimeProbe

logger = logging.getLogger(__name__)


def log_redirect(url: str, message: str) -> None:
    """Navigator used when the host application supplies none."""
    logger.info("Redirecting to %s%s", url, f" ({message})" if message else "")


class SessionController:
    """
    Session-timeout state machine bound to real collaborators.

    Transitions never interleave: an event raised while another one is being
    applied (a dialog answering synchronously, for instance) is queued and
    applied right after.
    """

    def __init__(
        self,
        policy: TimeoutPolicy,
        gateway: SessionGateway,
        dialog: Optional[WarningDialog] = None,
        clock: Optional[TimeoutClock] = None,
        navigator: Optional[Navigator] = None
    ):
        """
        Initialize the controller.

        Args:
            policy: Timeout policy of the session
            gateway: Server round trips
            dialog: Warning prompt (not needed with skip_dialog or refresh_only)
            clock: Countdown clock (defaults to the running asyncio loop)
            navigator: Called once with (url, message) when the context must leave
        """
        if dialog is None and not (policy.skip_dialog or policy.refresh_only):
            raise ConfigInvalid("A warning dialog is required unless the dialog is skipped")

        self._policy = policy
        self._gateway = gateway
        self._probe = SessionTimeProbe(gateway)
        self._dialog = dialog
        self._clock = SessionClock(clock or AsyncioTimeoutClock())
        self._navigator = navigator or log_redirect

        self._snapshot: Snapshot = initial_snapshot()
        self._dialog_handle: Optional[DialogHandle] = None
        self._task: Optional[asyncio.Task] = None
        self._pending: Deque[Event] = deque()
        self._dispatching = False
        self._attached = False
        self._detached = False
        self._redirected_to: Optional[str] = None

    @property
    def state(self) -> SessionState:
        return self._snapshot.state

    @property
    def snapshot(self) -> Snapshot:
        return self._snapshot

    @property
    def policy(self) -> TimeoutPolicy:
        return self._policy

    @property
    def clock(self) -> SessionClock:
        return self._clock

    @property
    def dialog_open(self) -> bool:
        return self._dialog_handle is not None

    @property
    def redirected_to(self) -> Optional[str]:
        return self._redirected_to

    @property
    def busy(self) -> bool:
        """True while a server call is in flight."""
        return self._task is not None

    def attach(self) -> None:
        """Start the countdown for this context."""
        if self._attached:
            logger.warning("Controller already attached")
            return
        self._attached = True
        logger.info(
            "Attaching autologout (timeout=%ss, padding=%ss, refresh_only=%s)",
            self._policy.idle_timeout_seconds,
            self._policy.warning_padding_seconds,
            self._policy.refresh_only,
        )
        self.dispatch(Attached())

    def detach(self) -> None:
        """Tear the context down: no timer, dialog or call survives."""
        if self._detached:
            return
        self._detached = True
        self._pending.clear()
        self._clock.disarm_all()
        self._close_dialog()
        if self._task is not None:
            self._task.cancel()
            self._task = None
        logger.debug("Controller detached in state %s", self.state.name)

    def dispatch(self, event: Event) -> None:
        """Apply an event and carry out the resulting effects."""
        if self._detached:
            logger.debug("Dropping %s after detach", event)
            return
        self._pending.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._pending and not self._detached:
                self._apply(self._pending.popleft())
        finally:
            self._dispatching = False

    async def wait_idle(self) -> None:
        """Wait until no server call is in flight (calls may chain)."""
        while self._task is not None:
            await asyncio.wait({self._task})
            # Let the completion callback of the finished task run.
            await asyncio.sleep(0)

    def _apply(self, event: Event) -> None:
        before = self._snapshot
        transition = step(before, event, self._policy)
        self._snapshot = transition.snapshot

        if transition.state is not before.state:
            logger.info("Session %s -> %s on %s", before.state.name, transition.state.name, event)
        elif not transition.effects:
            logger.debug("Ignoring %s in state %s", event, before.state.name)

        for effect in transition.effects:
            self._execute(effect)

    def _execute(self, effect: Effect) -> None:
        if isinstance(effect, ArmTimer):
            self._clock.arm(effect.slot, effect.seconds, self._on_timer(effect.slot))
        elif isinstance(effect, CancelTimer):
            self._clock.disarm(effect.slot)
        elif isinstance(effect, CancelAllTimers):
            self._clock.disarm_all()
        elif isinstance(effect, Invoke):
            self._start_call(effect.call)
        elif isinstance(effect, OpenDialog):
            self._open_dialog(effect.message)
        elif isinstance(effect, CloseDialog):
            self._close_dialog()
        elif isinstance(effect, Redirect):
            self._redirect(effect.url, effect.message)
        else:
            raise TypeError(f"Unknown effect: {effect!r}")

    def _on_timer(self, slot: TimerSlot):
        def fire():
            self._clock.fired(slot)
            if self._detached or self._snapshot.terminal:
                logger.debug("Stale %s countdown fired, ignoring", slot.value)
                return
            self.dispatch(TimerFired(slot))
        return fire

    def _start_call(self, call: Call) -> None:
        if self._task is not None:
            # The machine never asks for two calls at once.
            raise RuntimeError(f"{call.value} requested while another call is in flight")
        self._task = asyncio.get_running_loop().create_task(self._perform(call))

    async def _perform(self, call: Call) -> None:
        try:
            if call is Call.PROBE:
                remaining = await self._probe.get_remaining()
                event: Event = ProbeSucceeded(remaining.seconds_left)
            elif call is Call.KEEP_ALIVE:
                await self._gateway.keep_alive()
                event = CallSucceeded(call)
            else:
                await self._gateway.logout()
                event = CallSucceeded(call)
        except AuthExpired as e:
            logger.warning("Session no longer authenticated during %s: %s", call.value, e)
            event = CallFailed(call, auth_expired=True)
        except Unreachable as e:
            logger.info("Server unreachable during %s: %s", call.value, e)
            event = CallFailed(call, auth_expired=False)
        except Exception:
            logger.exception("Unexpected failure during %s", call.value)
            event = CallFailed(call, auth_expired=False)

        self._task = None
        self.dispatch(event)

    def _open_dialog(self, message: str) -> None:
        self._close_dialog()
        self._dialog_handle = self._dialog.open(
            message,
            on_extend=lambda: self.dispatch(UserChose(DialogChoice.EXTEND)),
            on_logout=lambda: self.dispatch(UserChose(DialogChoice.LOGOUT)),
            on_dismiss=lambda: self.dispatch(UserChose(DialogChoice.DISMISS)),
        )

    def _close_dialog(self) -> None:
        if self._dialog_handle is None:
            return
        handle, self._dialog_handle = self._dialog_handle, None
        self._dialog.close(handle)

    def _redirect(self, url: str, message: str) -> None:
        if self._redirected_to is not None:
            logger.debug("Already redirected to %s, ignoring %s", self._redirected_to, url)
            return
        self._redirected_to = url
        self._navigator(url, message)
