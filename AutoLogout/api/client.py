"""
aiohttp implementation of the session gateway.
Uses one shared aiohttp.ClientSession for connection pooling.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp

from AutoLogout.config import config
from AutoLogout.core.exceptions import AuthExpired, Unreachable
from AutoLogout.core.logging.utils import LogTimer

logger = logging.getLogger(__name__)


class SessionManager:
    """
    Singleton manager for aiohttp.ClientSession.

    Every gateway of the process shares one session; it is recreated when
    closed or when the running event loop changed.
    """

    _instance: Optional['SessionManager'] = None
    _session: Optional[aiohttp.ClientSession] = None
    _loop: Optional[asyncio.AbstractEventLoop] = None

    def __new__(cls) -> 'SessionManager':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def get_session(self) -> aiohttp.ClientSession:
        """Get or create the shared aiohttp session."""
        loop = asyncio.get_running_loop()
        if self._session is None or self._session.closed or self._loop is not loop:
            connector = aiohttp.TCPConnector(
                limit_per_host=4,
                ttl_dns_cache=300,
                enable_cleanup_closed=True
            )
            timeout = aiohttp.ClientTimeout(total=config.API_TIMEOUT_SECONDS, connect=10)
            self._session = aiohttp.ClientSession(
                connector=connector,
                timeout=timeout,
                trust_env=False
            )
            self._loop = loop
        return self._session

    async def close(self) -> None:
        """Close the shared session."""
        if self._session and not self._session.closed:
            await self._session.close()
        self._session = None
        self._loop = None

    @property
    def is_closed(self) -> bool:
        return self._session is None or self._session.closed


_session_manager = SessionManager()


class AutoLogoutAPIClient:
    """
    Session gateway talking to the autologout endpoints.

    403 answers become AuthExpired; every other failure (non-2xx status,
    connection error, timeout, unreadable body) becomes Unreachable.
    """

    def __init__(
        self,
        host: str = config.DEFAULT_HOST,
        port: int = config.DEFAULT_API_PORT,
        token: Optional[str] = None,
        base_path: str = config.BASE_PATH,
        scheme: str = "http"
    ):
        """
        Initialize the API client.

        Args:
            host (str): API server hostname
            port (int): API server port
            token (str): Session token sent as a bearer token
            base_path (str): Path prefix of the autologout endpoints
            scheme (str): http or https
        """
        self.host = host
        self.port = port
        self.token = token
        if not base_path.endswith("/"):
            base_path += "/"
        self.base_url = f"{scheme}://{host}:{port}{base_path}"

    def url(self, path: str) -> str:
        return f"{self.base_url}{path.lstrip('/')}"

    async def _request(self, path: str, method: str = "GET", data: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Make one round trip and return the decoded JSON body.

        Raises:
            AuthExpired: the server answered 403
            Unreachable: any other failure
        """
        headers = {"Accept": "application/json"}
        if self.token:
            headers["Authorization"] = f"Bearer {self.token}"

        url = self.url(path)
        try:
            session = await _session_manager.get_session()
            async with LogTimer(f"{method} {path}", logger):
                async with session.request(method=method, url=url, json=data, headers=headers) as response:
                    if response.status == 403:
                        raise AuthExpired("Session is no longer authenticated", {"url": url})
                    if response.status >= 300:
                        raise Unreachable(
                            f"Request failed with status {response.status}",
                            {"url": url, "status": response.status}
                        )
                    try:
                        return await response.json(content_type=None)
                    except ValueError as e:
                        raise Unreachable(f"Unreadable response: {e}", {"url": url}) from e
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise Unreachable(f"Request failed: {e!r}", {"url": url}) from e

    async def open_session(self, user_id: str, roles=(), refresh_only: bool = False) -> Dict[str, Any]:
        """
        Open a session on the server and keep its token.

        Returns:
            dict: success, token, policy and message
        """
        response = await self._request(
            "autologout/session",
            method="POST",
            data={"user_id": user_id, "roles": list(roles), "refresh_only": refresh_only}
        )
        if response.get("success") and response.get("token"):
            self.token = response["token"]
        return response

    async def get_policy(self) -> Dict[str, Any]:
        response = await self._request("autologout/policy")
        return response.get("policy") or {}

    async def get_remaining(self) -> int:
        response = await self._request(config.TIME_LEFT_PATH)
        try:
            return int(response["time"])
        except (KeyError, TypeError, ValueError) as e:
            raise Unreachable("Malformed time-left answer", {"body": response}) from e

    async def keep_alive(self) -> None:
        await self._request(config.SET_LAST_PATH, method="POST")

    async def logout(self) -> None:
        await self._request(config.LOGOUT_PATH, method="POST")

    def alt_logout_url(self) -> str:
        """Alternate logout page, with the token for plain navigation."""
        url = self.url(config.ALT_LOGOUT_PATH)
        return f"{url}?token={self.token}" if self.token else url


async def close_session() -> None:
    """
    Close the shared aiohttp session.

    Should be called when the application shuts down.
    """
    await _session_manager.close()


__all__ = ["AutoLogoutAPIClient", "SessionManager", "close_session"]
