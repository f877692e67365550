"""
Simulation startup module: prints the timeline of one session on virtual time.
"""

import asyncio
from typing import Optional, Sequence

from AutoLogout.config import config
from AutoLogout.core.exceptions import ConfigInvalid
from AutoLogout.core.interfaces import DialogChoice
from AutoLogout.core.logging import auto_configure
from AutoLogout.core.policy import TimeoutPolicy
from AutoLogout.core.simulation import run_simulation

__all__ = ['simulate', 'parse_answers']


def parse_answers(values: Sequence[str]) -> list:
    """Time-left answers from the command line; "x" marks an outage."""
    answers = []
    for value in values:
        if value.lower() == "x":
            answers.append(None)
        elif value.isdigit():
            answers.append(int(value))
        else:
            raise ConfigInvalid(f"Bad time-left answer {value!r}, expected seconds or 'x'")
    return answers


def simulate(
    timeout=config.DEFAULT_TIMEOUT,
    padding=config.DEFAULT_PADDING,
    remaining: Sequence[str] = ("0",),
    answer: Optional[str] = None,
    answer_after=0.0,
    skip_dialog=False,
    refresh_only=False,
    alt_logout=False,
    horizon=24 * 3600.0
):
    """
    Play one session and print what happens when.

    Args:
        timeout (int): Idle timeout in seconds
        padding (int): Warning padding in seconds
        remaining (Sequence[str]): Successive server time-left answers
        answer (str): extend, logout or dismiss; None leaves the dialog alone
        answer_after (float): Seconds before the user answers
        skip_dialog (bool): Log out without warning
        refresh_only (bool): Keep-alive only mode
        alt_logout (bool): Use the alternate logout method
        horizon (float): Virtual seconds after which the simulation stops
    """
    auto_configure("testing")
    try:
        policy = TimeoutPolicy(
            idle_timeout_seconds=timeout,
            warning_padding_seconds=padding,
            redirect_url=config.DEFAULT_REDIRECT_URL,
            skip_dialog=skip_dialog,
            refresh_only=refresh_only,
            use_alt_logout_method=alt_logout,
        )
        answers = parse_answers(remaining)
    except ConfigInvalid as e:
        print(f"Error: {e}")
        return 1

    choice = DialogChoice[answer.upper()] if answer else None
    timeline = asyncio.run(run_simulation(policy, answers, choice, answer_after, horizon))
    for line in timeline.lines():
        print(line)
    return 0
