"""
Timeline tests for the session controller on virtual time.

Every test drives a ManualTimeoutClock forward and waits for the server
calls the controller started before looking at the outcome.
"""

import asyncio
from dataclasses import replace

import pytest

from AutoLogout.core.exceptions import AuthExpired, ConfigInvalid, Unreachable
from AutoLogout.core.interfaces import DialogChoice, TimerSlot
from AutoLogout.core.machine import SessionState
from .conftest import FakeGateway, RecordingDialog


class TestWarningTimeline:
    """Tests for the countdown, warning and logout sequence."""

    @pytest.mark.asyncio
    async def test_unanswered_warning_logs_out_after_padding(self, make_controller, clock, gateway, dialog, navigator):
        """Test a 60/10 session warns at 60 and logs out at 70."""
        controller = make_controller()
        controller.attach()
        assert controller.state is SessionState.ACTIVE
        assert controller.clock.deadline == 60

        clock.advance(59)
        await controller.wait_idle()
        assert gateway.calls["get_remaining"] == 0

        clock.advance(1)
        await controller.wait_idle()
        assert controller.state is SessionState.WARNING_OPEN
        assert dialog.opened == ["Still there?"]
        assert controller.dialog_open

        clock.advance(10)
        await controller.wait_idle()
        assert controller.state is SessionState.LOGGED_OUT
        assert gateway.calls == {"get_remaining": 2, "keep_alive": 0, "logout": 1}
        assert dialog.closed == [1]
        assert navigator.calls == [("/user/login", "Logged out for inactivity.")]
        assert clock.pending() == []

    @pytest.mark.asyncio
    async def test_activity_elsewhere_moves_deadline(self, make_controller, clock, dialog):
        """Test a positive probe answer re-arms for exactly that many seconds."""
        gateway = FakeGateway(remaining=[25, 0])
        controller = make_controller(gateway=gateway)
        controller.attach()

        clock.advance(60)
        await controller.wait_idle()
        assert controller.state is SessionState.ACTIVE
        assert controller.clock.deadline == 85
        assert not controller.clock.is_armed(TimerSlot.PADDING)
        assert dialog.opened == []

        clock.advance(25)
        await controller.wait_idle()
        assert controller.state is SessionState.WARNING_OPEN

    @pytest.mark.asyncio
    async def test_recheck_finds_session_reset(self, make_controller, policy, clock, dialog, navigator):
        """Test padding 5 with a recheck answering 45 resumes with deadline 110."""
        gateway = FakeGateway(remaining=[0, 45])
        controller = make_controller(policy=replace(policy, warning_padding_seconds=5), gateway=gateway)
        controller.attach()

        clock.advance(60)
        await controller.wait_idle()
        assert controller.state is SessionState.WARNING_OPEN

        clock.advance(5)
        await controller.wait_idle()
        assert controller.state is SessionState.ACTIVE
        assert controller.clock.deadline == 110
        assert not dialog.is_open
        assert gateway.calls["logout"] == 0
        assert navigator.calls == []

    @pytest.mark.asyncio
    async def test_extend(self, make_controller, clock, gateway, dialog):
        """Test "Yes" keeps the session alive once and re-arms the full timeout."""
        controller = make_controller()
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()

        clock.advance(3)
        dialog.choose(DialogChoice.EXTEND)
        await controller.wait_idle()

        assert controller.state is SessionState.ACTIVE
        assert gateway.calls["keep_alive"] == 1
        assert dialog.closed == [1]
        assert controller.clock.deadline == 123
        assert [t.slot for t in clock.pending()] == [TimerSlot.MAIN]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("choice", [DialogChoice.LOGOUT, DialogChoice.DISMISS])
    async def test_logout_or_dismiss(self, make_controller, clock, gateway, dialog, navigator, choice):
        controller = make_controller()
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()

        dialog.choose(choice)
        await controller.wait_idle()

        assert controller.state is SessionState.LOGGED_OUT
        assert gateway.calls["logout"] == 1
        assert navigator.calls == [("/user/login", "Logged out for inactivity.")]
        assert clock.pending() == []

    @pytest.mark.asyncio
    async def test_dismiss_after_padding_fired(self, make_controller, clock, gateway, dialog, navigator):
        """Test a late click on a dialog the padding already closed changes nothing."""
        controller = make_controller()
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()

        clock.advance(10)
        dialog.choose(DialogChoice.DISMISS)
        dialog.choose(DialogChoice.EXTEND)
        await controller.wait_idle()

        assert controller.state is SessionState.LOGGED_OUT
        assert gateway.calls == {"get_remaining": 2, "keep_alive": 0, "logout": 1}
        assert len(navigator.calls) == 1

    @pytest.mark.asyncio
    async def test_dismiss_then_padding(self, make_controller, clock, gateway, dialog, navigator):
        """Test the padding firing after a dismissal does not log out twice."""
        controller = make_controller()
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()

        dialog.choose(DialogChoice.DISMISS)
        clock.advance(10)
        await controller.wait_idle()

        assert gateway.calls == {"get_remaining": 1, "keep_alive": 0, "logout": 1}
        assert len(navigator.calls) == 1

    @pytest.mark.asyncio
    async def test_padding_expires_before_first_probe_answers(self, make_controller, clock, gateway, dialog, navigator):
        """Test the pending probe serves as the recheck when both countdowns pass at once."""
        controller = make_controller()
        controller.attach()
        clock.advance(70)
        assert controller.state is SessionState.CONFIRMING_LOGOUT

        await controller.wait_idle()
        assert controller.state is SessionState.LOGGED_OUT
        assert dialog.opened == []
        assert gateway.calls == {"get_remaining": 1, "keep_alive": 0, "logout": 1}

        clock.advance(1000)
        await controller.wait_idle()
        assert navigator.calls == [("/user/login", "Logged out for inactivity.")]
        assert controller.redirected_to == "/user/login"

    @pytest.mark.asyncio
    async def test_synchronous_answer_is_queued(self, make_controller, clock, gateway):
        """Test a dialog answering from inside open() is applied after it."""
        dialog = RecordingDialog(auto_answer=DialogChoice.EXTEND)
        controller = make_controller(dialog=dialog)
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()

        assert controller.state is SessionState.ACTIVE
        assert gateway.calls["keep_alive"] == 1
        assert dialog.closed == [1]
        assert gateway.max_in_flight == 1


class TestFailures:
    """Tests for server failures."""

    @pytest.mark.asyncio
    @pytest.mark.parametrize("stage", ["probe", "keep_alive", "logout"])
    async def test_auth_expired_is_terminal(self, make_controller, clock, dialog, navigator, stage):
        """Test a 403 from any call logs out with no timer or dialog left."""
        expired = AuthExpired("403")
        gateway = FakeGateway(
            remaining=[expired if stage == "probe" else 0],
            keep_alive=[expired],
            logout=[expired],
        )
        controller = make_controller(gateway=gateway)
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()
        if stage != "probe":
            dialog.choose(DialogChoice.EXTEND if stage == "keep_alive" else DialogChoice.LOGOUT)
            await controller.wait_idle()

        assert controller.state is SessionState.LOGGED_OUT
        assert navigator.calls == [("/user/login", "Logged out for inactivity.")]
        assert clock.pending() == []
        assert not dialog.is_open

    @pytest.mark.asyncio
    async def test_probe_unreachable_retries_next_cycle(self, make_controller, clock, dialog):
        gateway = FakeGateway(remaining=[Unreachable("down"), 0])
        controller = make_controller(gateway=gateway)
        controller.attach()

        clock.advance(60)
        await controller.wait_idle()
        assert controller.state is SessionState.ACTIVE
        assert controller.clock.deadline == 120
        assert dialog.opened == []

        clock.advance(60)
        await controller.wait_idle()
        assert controller.state is SessionState.WARNING_OPEN

    @pytest.mark.asyncio
    async def test_unexpected_error_is_contained(self, make_controller, clock):
        gateway = FakeGateway(remaining=[ValueError("boom")])
        controller = make_controller(gateway=gateway)
        controller.attach()

        clock.advance(60)
        await controller.wait_idle()
        assert controller.state is SessionState.ACTIVE
        assert controller.clock.deadline == 120

    @pytest.mark.asyncio
    async def test_logout_unreachable_still_redirects(self, make_controller, clock, dialog, navigator):
        gateway = FakeGateway(logout=[Unreachable("down")])
        controller = make_controller(gateway=gateway)
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()
        dialog.choose(DialogChoice.LOGOUT)
        await controller.wait_idle()

        assert controller.state is SessionState.LOGGED_OUT
        assert navigator.calls == [("/user/login", "Logged out for inactivity.")]


class TestModes:
    """Tests for refresh-only, skip-dialog and the alternate logout."""

    @pytest.mark.asyncio
    async def test_refresh_only_keeps_alive_forever(self, make_controller, policy, clock, gateway, navigator):
        controller = make_controller(policy=replace(policy, refresh_only=True), dialog=None)
        controller.attach()
        assert controller.state is SessionState.REFRESH_ONLY_IDLE

        for _ in range(3):
            clock.advance(60)
            await controller.wait_idle()

        assert controller.state is SessionState.REFRESH_ONLY_IDLE
        assert gateway.calls == {"get_remaining": 0, "keep_alive": 3, "logout": 0}
        assert controller.clock.deadline == 240
        assert navigator.calls == []

    @pytest.mark.asyncio
    async def test_refresh_only_keep_alive_unreachable(self, make_controller, policy, clock, navigator):
        """Test a failed refresh re-arms the countdown and retries next cycle."""
        gateway = FakeGateway(keep_alive=[Unreachable("down"), None])
        controller = make_controller(policy=replace(policy, refresh_only=True), gateway=gateway, dialog=None)
        controller.attach()

        clock.advance(60)
        await controller.wait_idle()
        assert controller.state is SessionState.REFRESH_ONLY_IDLE
        assert controller.clock.deadline == 120

        clock.advance(60)
        await controller.wait_idle()
        assert gateway.calls["keep_alive"] == 2
        assert controller.state is SessionState.REFRESH_ONLY_IDLE
        assert navigator.calls == []

    @pytest.mark.asyncio
    async def test_refresh_only_keep_alive_auth_expired(self, make_controller, policy, clock, navigator):
        gateway = FakeGateway(keep_alive=[AuthExpired("403")])
        controller = make_controller(policy=replace(policy, refresh_only=True), gateway=gateway, dialog=None)
        controller.attach()

        clock.advance(60)
        await controller.wait_idle()
        assert controller.state is SessionState.LOGGED_OUT
        assert navigator.calls == [("/user/login", "Logged out for inactivity.")]
        assert clock.pending() == []
        assert gateway.calls == {"get_remaining": 0, "keep_alive": 1, "logout": 0}

    @pytest.mark.asyncio
    async def test_skip_dialog(self, make_controller, policy, clock, gateway, navigator):
        controller = make_controller(policy=replace(policy, skip_dialog=True), dialog=None)
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()

        assert controller.state is SessionState.LOGGED_OUT
        assert gateway.calls["logout"] == 1
        assert navigator.calls == [("/user/login", "Logged out for inactivity.")]

    @pytest.mark.asyncio
    async def test_alt_logout_method(self, make_controller, policy, clock, gateway, dialog, navigator):
        controller = make_controller(policy=replace(policy, use_alt_logout_method=True))
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()
        dialog.choose(DialogChoice.LOGOUT)
        await controller.wait_idle()

        assert controller.state is SessionState.LOGGED_OUT
        assert gateway.calls["logout"] == 0
        assert navigator.calls == [("/autologout_alt_logout", "Logged out for inactivity.")]

    def test_dialog_required(self, policy, gateway):
        from AutoLogout.core.controller import SessionController

        with pytest.raises(ConfigInvalid):
            SessionController(policy, gateway)


class TestLifecycle:
    """Tests for attach and detach."""

    @pytest.mark.asyncio
    async def test_detach_cancels_everything(self, make_controller, clock, gateway, dialog):
        controller = make_controller()
        controller.attach()
        clock.advance(60)
        await controller.wait_idle()
        assert dialog.is_open

        controller.detach()
        assert clock.pending() == []
        assert not dialog.is_open

        clock.advance(600)
        dialog.choose(DialogChoice.LOGOUT)
        await controller.wait_idle()
        assert gateway.calls["logout"] == 0

    @pytest.mark.asyncio
    async def test_detach_cancels_call_in_flight(self, make_controller, clock, navigator):
        controller = make_controller()
        controller.attach()
        clock.advance(60)
        assert controller.busy

        controller.detach()
        assert not controller.busy
        await asyncio.sleep(0)
        assert navigator.calls == []

    @pytest.mark.asyncio
    async def test_attach_twice(self, make_controller, clock):
        controller = make_controller()
        controller.attach()
        controller.attach()
        assert len(clock.pending()) == 1
