"""
Contracts between the session controller and its collaborators.

The controller depends on these protocols only, so the state machine can run
against a virtual clock, a scripted gateway and a recording dialog in tests,
and against asyncio, aiohttp and tkinter in production.
"""

from abc import abstractmethod
from dataclasses import dataclass
from enum import Enum, auto
from typing import Any, Callable, Protocol, runtime_checkable


class TimerSlot(Enum):
    """Independent countdown slots; each holds at most one pending wake-up."""
    MAIN = "main"
    PADDING = "padding"


class DialogChoice(Enum):
    """Resolutions of the warning dialog."""
    EXTEND = auto()
    LOGOUT = auto()
    DISMISS = auto()


@dataclass(frozen=True)
class RemainingTime:
    """Authoritative seconds left before the warning should be shown."""
    seconds_left: int

    def __post_init__(self):
        if self.seconds_left < 0:
            object.__setattr__(self, "seconds_left", 0)

    @property
    def expired(self) -> bool:
        return self.seconds_left == 0


TimerHandle = Any
DialogHandle = Any
Navigator = Callable[[str, str], None]


@runtime_checkable
class TimeoutClock(Protocol):
    """Protocol for countdown scheduling."""

    @abstractmethod
    def now(self) -> float:
        """Current clock reading in seconds."""
        ...

    @abstractmethod
    def schedule(
        self,
        slot: TimerSlot,
        delay_seconds: float,
        on_fire: Callable[[], None]
    ) -> TimerHandle:
        """Schedule a wake-up in the given slot and return its handle."""
        ...

    @abstractmethod
    def cancel(self, handle: TimerHandle) -> None:
        """Cancel a pending wake-up; unknown or fired handles are ignored."""
        ...


@runtime_checkable
class SessionGateway(Protocol):
    """Protocol for the three server round trips."""

    @abstractmethod
    async def get_remaining(self) -> int:
        """
        Ask the server how many seconds are left before the warning.

        Raises:
            AuthExpired: the session is no longer authenticated
            Unreachable: any other transport failure
        """
        ...

    @abstractmethod
    async def keep_alive(self) -> None:
        """Extend the server-side session expiry to now + idle timeout."""
        ...

    @abstractmethod
    async def logout(self) -> None:
        """Terminate the server-side session."""
        ...


@runtime_checkable
class WarningDialog(Protocol):
    """Protocol for the logout-imminent prompt."""

    @abstractmethod
    def open(
        self,
        message: str,
        on_extend: Callable[[], None],
        on_logout: Callable[[], None],
        on_dismiss: Callable[[], None]
    ) -> DialogHandle:
        """
        Present the prompt.

        Exactly one of the callbacks is reported per user decision. A close
        through the window manager reports on_dismiss.
        """
        ...

    @abstractmethod
    def close(self, handle: DialogHandle) -> None:
        """Close the prompt without reporting any decision."""
        ...
