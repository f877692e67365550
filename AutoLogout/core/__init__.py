"""
Core of AutoLogout: the session-timeout state machine and its collaborators.
"""

from .clock import AsyncioTimeoutClock, ManualTimeoutClock, SessionClock
from .controller import SessionController
from .exceptions import AuthExpired, AutoLogoutError, ConfigInvalid, SessionExpired, Unreachable
from .interfaces import (
    DialogChoice,
    RemainingTime,
    SessionGateway,
    TimeoutClock,
    TimerSlot,
    WarningDialog,
)
from .machine import SessionState
from .policy import AutologoutSettings, TimeoutPolicy, load_settings, resolve_policy
from .probe import SessionTimeProbe

__all__ = [
    'AsyncioTimeoutClock',
    'ManualTimeoutClock',
    'SessionClock',
    'SessionController',
    'AuthExpired',
    'AutoLogoutError',
    'ConfigInvalid',
    'SessionExpired',
    'Unreachable',
    'DialogChoice',
    'RemainingTime',
    'SessionGateway',
    'TimeoutClock',
    'TimerSlot',
    'WarningDialog',
    'SessionState',
    'AutologoutSettings',
    'TimeoutPolicy',
    'load_settings',
    'resolve_policy',
    'SessionTimeProbe',
]
