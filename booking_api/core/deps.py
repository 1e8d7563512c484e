"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from booking_api.core.security import decode_session_token
from booking_api.db.session import SessionLocal


# Cookie and header names
COOKIE_NAME = "booking_session"
CSRF_HEADER = "X-Requested-With"
CSRF_HEADER_VALUE = "XMLHttpRequest"


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_current_user(request: Request, db: Session = Depends(get_db)):
    """
    Get authenticated user from session cookie.

    Raises:
        HTTPException 401: Authentication failed
    """
    # Import here to avoid circular imports
    from booking_api.db.models import User

    token = request.cookies.get(COOKIE_NAME)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        payload = decode_session_token(token)
        user_id = UUID(payload["sub"])
        payload["team_id"] = UUID(payload["team_id"])
    except Exception:
        raise HTTPException(status_code=401, detail="Invalid session")

    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=401, detail="User not found")

    if not user.is_active:
        raise HTTPException(status_code=401, detail="Account disabled")

    request.state.session_payload = payload
    return user


def get_current_session(request: Request, db: Session = Depends(get_db)):
    """
    Get full session context: user_id, team_id, role.

    This is the PRIMARY auth dependency for staff endpoints.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: No membership in the session's team or unknown role
    """
    from booking_api.db.enums import TeamRole
    from booking_api.db.models import TeamMember
    from booking_api.schemas.auth import UserSession

    user = get_current_user(request, db)
    team_id = request.state.session_payload.get("team_id")

    membership = db.query(TeamMember).filter(
        TeamMember.user_id == user.id,
        TeamMember.team_id == team_id,
    ).first()

    if not membership:
        raise HTTPException(status_code=403, detail="No team membership")

    if not TeamRole.has_value(membership.role):
        raise HTTPException(
            status_code=403,
            detail=f"Unknown role '{membership.role}'. Contact administrator."
        )

    return UserSession(
        user_id=user.id,
        team_id=membership.team_id,
        role=TeamRole(membership.role),
        email=user.email,
        display_name=user.display_name,
    )


def require_admin(request: Request, db: Session = Depends(get_db)):
    """Session dependency that only admits team admins."""
    session = get_current_session(request, db)
    if not session.is_admin:
        raise HTTPException(
            status_code=403,
            detail=f"Role '{session.role.value}' not authorized for this action"
        )
    return session


def require_csrf_header(request: Request) -> None:
    """
    Verify CSRF header on mutations.

    Apply to state-changing endpoints (POST, PUT, PATCH, DELETE).

    Raises:
        HTTPException 403: Missing or invalid CSRF header
    """
    if request.headers.get(CSRF_HEADER) != CSRF_HEADER_VALUE:
        raise HTTPException(
            status_code=403,
            detail=f"Missing CSRF header. Include '{CSRF_HEADER}: {CSRF_HEADER_VALUE}'"
        )
