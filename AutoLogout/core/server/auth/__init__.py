"""
Session tokens for the autologout endpoints.

A token is a signed JWT carrying the session id; the authority decides
whether that session is still alive. Anything that does not decode is
treated as an expired session.
"""

import logging
import time
from typing import Optional

import jwt

from AutoLogout.config import config
from AutoLogout.core.exceptions import SessionExpired

logger = logging.getLogger(__name__)


class SessionTokenCodec:
    """Issues and reads bearer tokens for sessions."""

    def __init__(self, secret: Optional[str] = None, algorithm: Optional[str] = None):
        """
        Initialize the codec.

        Args:
            secret: Signing key (defaults to config.JWT_SECRET)
            algorithm: JWT algorithm (defaults to config.JWT_ALGORITHM)
        """
        self._secret = secret or config.JWT_SECRET
        self._algorithm = algorithm or config.JWT_ALGORITHM

    def issue(self, session_id: str, user_id: str) -> str:
        payload = {
            "sid": session_id,
            "sub": user_id,
            "iat": int(time.time()),
        }
        return jwt.encode(payload, self._secret, algorithm=self._algorithm)

    def read(self, token: str) -> str:
        """
        Return the session id inside a token.

        Raises:
            SessionExpired: the token is invalid or carries no session id
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except jwt.PyJWTError as e:
            logger.warning("Rejected session token: %s", e)
            raise SessionExpired(f"Invalid token: {e}") from e

        session_id = payload.get("sid")
        if not session_id:
            raise SessionExpired("No session id in token payload")
        return str(session_id)


def extract_bearer(authorization: Optional[str]) -> Optional[str]:
    """Token from an `Authorization: Bearer <token>` header value."""
    if not authorization or not authorization.startswith("Bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None
