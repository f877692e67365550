"""
HTTP side of AutoLogout: the aiohttp session gateway used by clients and the
FastAPI application serving the autologout endpoints.
"""

from .routes import run

__all__ = ['run']
