"""
Server-side pieces: the session authority and session tokens.
"""

from .auth import SessionTokenCodec, extract_bearer
from .session import InMemorySessionAuthority, UserSession

__all__ = [
    'InMemorySessionAuthority',
    'SessionTokenCodec',
    'UserSession',
    'extract_bearer',
]
