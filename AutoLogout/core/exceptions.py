"""
Error taxonomy for the autologout core.

AuthExpired is always terminal for a browsing context, Unreachable never is
by itself, and ConfigInvalid is raised before a controller ever runs.
"""


class AutoLogoutError(Exception):
    """Base exception for autologout errors."""

    def __init__(self, message: str, details: dict = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        if self.details:
            return f"{self.message} - Details: {self.details}"
        return self.message


class AuthExpired(AutoLogoutError):
    """The session is no longer authenticated (HTTP 403 from the server)."""
    pass


class Unreachable(AutoLogoutError):
    """Transient network or server failure."""
    pass


class ConfigInvalid(AutoLogoutError):
    """Settings or policy values out of range."""
    pass


class SessionExpired(AutoLogoutError):
    """Raised by the server-side authority for unknown or lapsed sessions."""
    pass
