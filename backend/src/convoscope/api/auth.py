"""
Authentication for API endpoints.

Two independent checks:

- Ingestion callers present a shared secret in the ``x-api-key`` header.
- Dashboard users log in with the configured username/password and receive
  a signed session cookie; dashboard endpoints depend on require_session().

Session tokens are HS256 JWTs keyed by the session secret; the ``exp``
claim bounds their lifetime.
"""

import hmac
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from fastapi import HTTPException, Request, status
from jose import JWTError, jwt

from convoscope.config import settings

logger = logging.getLogger(__name__)

SESSION_TOKEN_ALGORITHM = "HS256"
SESSION_SUBJECT = "dashboard"


@dataclass
class DashboardSession:
    """Authenticated dashboard session."""

    expires_at: datetime


def verify_api_key(provided: Optional[str], expected: Optional[str] = None) -> bool:
    """
    Check an ingestion API key in constant time.

    An unconfigured key (empty setting) rejects every request.
    """
    expected = settings.api_key if expected is None else expected
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def validate_credentials(username: str, password: str) -> bool:
    """
    Check dashboard login credentials against settings.

    Raises:
        RuntimeError: If dashboard credentials are not configured
    """
    if not settings.dashboard_username or not settings.dashboard_password:
        raise RuntimeError(
            "DASHBOARD_USERNAME and DASHBOARD_PASSWORD environment variables must be set"
        )
    username_ok = hmac.compare_digest(
        username.encode(), settings.dashboard_username.encode()
    )
    password_ok = hmac.compare_digest(
        password.encode(), settings.dashboard_password.encode()
    )
    return username_ok and password_ok


def _session_secret() -> str:
    if not settings.session_secret:
        raise RuntimeError("SESSION_SECRET environment variable must be set")
    return settings.session_secret


def create_session_token(now: Optional[float] = None) -> str:
    """Issue a session token valid for settings.session_max_age_seconds."""
    issued = int(time.time() if now is None else now)
    payload = {
        "sub": SESSION_SUBJECT,
        "iat": issued,
        "exp": issued + settings.session_max_age_seconds,
    }
    return jwt.encode(payload, _session_secret(), algorithm=SESSION_TOKEN_ALGORITHM)


def verify_session_token(token: Optional[str]) -> Optional[DashboardSession]:
    """
    Validate a session token.

    Returns:
        DashboardSession if the signature matches and the token has not
        expired, otherwise None
    """
    if not token or not settings.session_secret:
        return None

    try:
        claims = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[SESSION_TOKEN_ALGORITHM],
            options={"require_exp": True},
        )
    except JWTError as e:
        logger.debug(f"Rejected session token: {e}")
        return None

    if claims.get("sub") != SESSION_SUBJECT:
        return None

    return DashboardSession(
        expires_at=datetime.fromtimestamp(int(claims["exp"]), tz=timezone.utc)
    )


def get_session_token(request: Request) -> Optional[str]:
    """Read the session cookie from a request."""
    return request.cookies.get(settings.session_cookie_name)


def require_session(request: Request) -> DashboardSession:
    """
    FastAPI dependency gating dashboard endpoints.

    Raises:
        HTTPException(401): If there is no valid session cookie
    """
    session = verify_session_token(get_session_token(request))
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Unauthorized",
        )
    return session
