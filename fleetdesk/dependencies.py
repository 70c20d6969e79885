# FleetDesk - Authentication Dependencies
# FastAPI dependencies for protecting routes

from typing import Optional

from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from fleetdesk.database import get_db
from fleetdesk.services.auth import AuthService, AuthSession


# Cookie name for session token
SESSION_COOKIE_NAME = "fleetdesk_session"


def get_session_token(request: Request) -> Optional[str]:
    """
    Extract the session token from an `Authorization: Bearer <token>`
    header, falling back to the session cookie.
    """
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()

    return request.cookies.get(SESSION_COOKIE_NAME) or None


def get_client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


def get_current_session_optional(
    request: Request,
    db: Session = Depends(get_db),
) -> Optional[AuthSession]:
    """The caller's session if logged in, None otherwise."""
    session_token = get_session_token(request)
    if not session_token:
        return None

    return AuthService(db).validate_session(session_token)


def get_current_session(
    session: Optional[AuthSession] = Depends(get_current_session_optional),
) -> AuthSession:
    """
    The caller's session, or 401.

    Usage:
        @router.get("/time/entries")
        def list_entries(session: AuthSession = Depends(get_current_session)):
            ...
    """
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


def require_admin(
    session: AuthSession = Depends(get_current_session),
) -> AuthSession:
    """Require the caller to be an admin."""
    if not session.is_admin:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return session


def require_manager(
    session: AuthSession = Depends(get_current_session),
) -> AuthSession:
    """Require the caller to be a manager or admin."""
    if not session.is_manager:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Manager access required",
        )
    return session
