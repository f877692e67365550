# Standard library imports
import logging
from typing import Dict, List, Optional

# Third-party imports
from fastapi import HTTPException
from pydantic import BaseModel, Field
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

# Local imports
from AutoLogout.config import config
from AutoLogout.core.exceptions import SessionExpired
from AutoLogout.core.server import InMemorySessionAuthority, SessionTokenCodec, extract_bearer

logger = logging.getLogger(__name__)

SESSION_COOKIE = "autologoutToken"
IDLE_HINT_HEADER = "X-Idle-Hint-Seconds"

# Requests to these paths never count as user activity.
AUTOLOGOUT_PATHS = (
    config.BASE_PATH + config.TIME_LEFT_PATH,
    config.BASE_PATH + config.SET_LAST_PATH,
    config.BASE_PATH + config.LOGOUT_PATH,
    config.BASE_PATH + config.ALT_LOGOUT_PATH,
    "/autologout/",
)


class SessionRequest(BaseModel):
    user_id: str
    roles: List[str] = Field(default_factory=list)
    refresh_only: bool = False
    admin_page: bool = False


class SessionResponse(BaseModel):
    success: bool
    token: str | None = None
    policy: Dict | None = None
    message: str | None = None


class TimeLeftResponse(BaseModel):
    time: int


class StatusResponse(BaseModel):
    success: bool
    message: str | None = None


def request_token(request: Request, allow_query: bool = False) -> Optional[str]:
    """
    Session token from the Authorization header or the session cookie.

    `?token=` is only read when `allow_query` is set, for plain page
    navigations that cannot send a header.
    """
    token = extract_bearer(request.headers.get("Authorization")) or request.cookies.get(SESSION_COOKIE)
    if not token and allow_query:
        token = request.query_params.get("token")
    return token


def get_authority(request: Request) -> InMemorySessionAuthority:
    return request.app.state.authority


def get_codec(request: Request) -> SessionTokenCodec:
    return request.app.state.codec


def get_session_id(request: Request) -> str:
    """
    Dependency resolving the caller's session id.

    Any token problem is reported as 403, which clients read as an expired
    session.
    """
    token = request_token(request)
    if not token:
        raise HTTPException(status_code=403, detail="No session token provided")
    try:
        return get_codec(request).read(token)
    except SessionExpired as e:
        raise HTTPException(status_code=403, detail=e.message)


def forbidden(error: SessionExpired) -> HTTPException:
    return HTTPException(status_code=403, detail=error.message)


class ActivityMiddleware(BaseHTTPMiddleware):
    """
    Counts ordinary requests of a session as activity.

    Autologout endpoints are excluded, so polling the remaining time never
    extends a session. Responses carry the session's idle timeout as a hint.
    """

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if any(path.startswith(p) for p in AUTOLOGOUT_PATHS):
            return await call_next(request)

        idle_hint = None
        token = request_token(request)
        if token:
            try:
                session_id = get_codec(request).read(token)
                session = get_authority(request).touch(session_id)
                idle_hint = session.policy.idle_timeout_seconds
            except SessionExpired as e:
                logger.debug("Request on %s without a live session: %s", path, e)

        response = await call_next(request)
        if idle_hint is not None:
            response.headers[IDLE_HINT_HEADER] = str(idle_hint)
        return response
