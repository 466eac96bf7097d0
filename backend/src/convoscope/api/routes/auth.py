"""
Dashboard authentication routes.

Login issues a signed session cookie; logout clears it.
"""

import logging

from fastapi import APIRouter, HTTPException, Request, Response, status

from convoscope.api.auth import (
    create_session_token,
    get_session_token,
    validate_credentials,
    verify_session_token,
)
from convoscope.api.schemas import LoginRequest, SessionStatus
from convoscope.config import settings

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/login", response_model=SessionStatus)
async def login(credentials: LoginRequest, response: Response) -> SessionStatus:
    """Check dashboard credentials and start a session."""
    try:
        valid = validate_credentials(credentials.username, credentials.password)
        token = create_session_token() if valid else None
    except RuntimeError as e:
        logger.error(f"Dashboard login unavailable: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Dashboard login is not configured",
        )

    if not token:
        logger.warning(f"Failed dashboard login for user {credentials.username!r}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid username or password",
        )

    response.set_cookie(
        key=settings.session_cookie_name,
        value=token,
        max_age=settings.session_max_age_seconds,
        httponly=True,
        secure=settings.environment == "production",
        samesite="lax",
        path="/",
    )
    session = verify_session_token(token)
    return SessionStatus(
        authenticated=True, expires_at=session.expires_at if session else None
    )


@router.post("/logout", response_model=SessionStatus)
async def logout(response: Response) -> SessionStatus:
    """End the dashboard session."""
    response.delete_cookie(key=settings.session_cookie_name, path="/")
    return SessionStatus(authenticated=False)


@router.get("/session", response_model=SessionStatus)
async def get_session_status(request: Request) -> SessionStatus:
    """Report whether the caller holds a valid session."""
    session = verify_session_token(get_session_token(request))
    if session is None:
        return SessionStatus(authenticated=False)
    return SessionStatus(authenticated=True, expires_at=session.expires_at)
