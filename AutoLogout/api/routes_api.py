# Standard library imports
from typing import Optional

# Third-party imports
from fastapi import APIRouter, Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import RedirectResponse

# Local imports
from AutoLogout import __version__ as __main_version__
from AutoLogout.core.policy import AutologoutSettings, load_settings, resolve_policy
from .routes_base import *

router = APIRouter()


@router.get("/" + config.TIME_LEFT_PATH, response_model=TimeLeftResponse)
async def get_time_left(
    session_id: str = Depends(get_session_id),
    authority: InMemorySessionAuthority = Depends(get_authority),
):
    """Seconds until the warning is due; 0 means warn now."""
    try:
        return TimeLeftResponse(time=authority.remaining(session_id))
    except SessionExpired as e:
        raise forbidden(e)


@router.post("/" + config.SET_LAST_PATH, response_model=StatusResponse)
async def set_last(
    session_id: str = Depends(get_session_id),
    authority: InMemorySessionAuthority = Depends(get_authority),
):
    """Keep-alive: restart the session's idle countdown."""
    try:
        authority.touch(session_id)
    except SessionExpired as e:
        raise forbidden(e)
    return StatusResponse(success=True, message="Session extended")


@router.post("/" + config.LOGOUT_PATH, response_model=StatusResponse)
async def logout(
    session_id: str = Depends(get_session_id),
    authority: InMemorySessionAuthority = Depends(get_authority),
):
    """End the session. A second call finds nothing to end and gets 403."""
    try:
        session = authority.terminate(session_id)
    except SessionExpired as e:
        raise forbidden(e)
    logger.info("User %s logged out by autologout", session.user_id)
    return StatusResponse(success=True, message="Logout successful")


@router.get("/" + config.ALT_LOGOUT_PATH)
async def alt_logout(request: Request):
    """
    Alternate logout method: a page navigation instead of an API call.

    Ends the session if there still is one and always redirects, so the
    browser lands on the redirect page either way.
    """
    settings: AutologoutSettings = request.app.state.settings
    redirect_url = settings.redirect_url
    token = request_token(request, allow_query=True)
    if token:
        authority = get_authority(request)
        try:
            session_id = get_codec(request).read(token)
            session = authority.terminate(session_id)
            redirect_url = session.policy.redirect_url
        except SessionExpired as e:
            logger.debug("Alternate logout without a live session: %s", e)
    response = RedirectResponse(redirect_url, status_code=303)
    response.delete_cookie(SESSION_COOKIE)
    return response


@router.post("/autologout/session", response_model=SessionResponse)
async def open_session(body: SessionRequest, request: Request):
    """Open a session for a user and hand out its token and policy."""
    settings: AutologoutSettings = request.app.state.settings
    user_id = body.user_id.strip()
    if not user_id:
        raise HTTPException(status_code=400, detail="user_id is required")

    policy = resolve_policy(
        settings,
        body.roles,
        refresh_only=body.refresh_only,
        admin_page=body.admin_page,
    )
    if policy is None:
        return SessionResponse(success=True, message="Autologout does not apply to this session")

    session = get_authority(request).open(user_id, policy, tuple(body.roles))
    token = get_codec(request).issue(session.session_id, user_id)
    return SessionResponse(success=True, token=token, policy=policy.to_dict(), message="Session opened")


@router.get("/autologout/policy", response_model=SessionResponse)
async def get_policy(
    session_id: str = Depends(get_session_id),
    authority: InMemorySessionAuthority = Depends(get_authority),
):
    """Timeout policy of the caller's session."""
    try:
        session = authority.get(session_id)
    except SessionExpired as e:
        raise forbidden(e)
    return SessionResponse(success=True, policy=session.policy.to_dict())


def create_app(
    settings: Optional[AutologoutSettings] = None,
    authority: Optional[InMemorySessionAuthority] = None,
    codec: Optional[SessionTokenCodec] = None,
) -> FastAPI:
    """
    Build the autologout API application.

    Args:
        settings: Validated autologout settings (loaded from config.SETTINGS_FILE if omitted)
        authority: Session authority (a fresh in-memory one if omitted)
        codec: Session token codec
    """
    app = FastAPI(
        title="AutoLogout api",
        version=__main_version__,
        description="Session inactivity endpoints for AutoLogout clients.",
        contact={"name": "AutoLogout Team"}
    )
    app.state.settings = settings or load_settings()
    app.state.authority = authority or InMemorySessionAuthority()
    app.state.codec = codec or SessionTokenCodec()

    app.add_middleware(ActivityMiddleware)
    app.add_middleware(GZipMiddleware, minimum_size=1000)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(router)
    return app
