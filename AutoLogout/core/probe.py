"""
Authoritative remaining-time lookup.

The client countdown is only a polling cadence; the server answers how much
time is actually left, which is how activity in one tab extends the deadline
seen by every other tab of the same session.
"""

import logging

from AutoLogout.core.exceptions import Unreachable
from AutoLogout.core.interfaces import RemainingTime, SessionGateway

logger = logging.getLogger(__name__)


class SessionTimeProbe:
    """Asks the session gateway for the seconds left before the warning."""

    def __init__(self, gateway: SessionGateway):
        self._gateway = gateway

    async def get_remaining(self) -> RemainingTime:
        """
        Probe the server once. Results are never cached.

        Raises:
            AuthExpired: the session is no longer authenticated
            Unreachable: any other transport failure
        """
        seconds = await self._gateway.get_remaining()
        try:
            remaining = RemainingTime(int(seconds))
        except (TypeError, ValueError) as e:
            raise Unreachable("Malformed time-left answer", {"time": seconds}) from e
        logger.debug("Server reports %ds left", remaining.seconds_left)
        return remaining
