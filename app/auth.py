"""Session authentication for API routes.

Sessions are issued by the auth provider and stored in the ``sessions`` table;
this module only resolves a session token (``Authorization: Bearer <token>`` or
the session cookie) to the signed-in user.
"""
import logging
from datetime import datetime
from typing import Optional

from fastapi import Depends, Request
from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import settings
from app.db import get_db
from app.models import AuthSession, User
from app.utils import utcnow

logger = logging.getLogger(__name__)


class SessionUser(BaseModel):
    id: str
    name: str
    email: str


class SessionInfo(BaseModel):
    """Authenticated session resolved from request headers."""
    session_id: str
    expires_at: datetime
    user: SessionUser


def _token_from_request(request: Request) -> Optional[str]:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token.strip():
        return token.strip()
    return request.cookies.get(settings.SESSION_COOKIE_NAME) or None


def lookup_session(db: Session, token: str, now: Optional[datetime] = None) -> Optional[SessionInfo]:
    """Return the unexpired session for ``token`` with its user, or None."""
    now = now or utcnow()
    row = db.execute(
        select(AuthSession, User)
        .join(User, AuthSession.user_id == User.id)
        .where(AuthSession.token == token, AuthSession.expires_at > now)
    ).first()
    if row is None:
        return None
    auth_session, user = row
    return SessionInfo(
        session_id=auth_session.id,
        expires_at=auth_session.expires_at,
        user=SessionUser(id=user.id, name=user.name, email=user.email),
    )


def get_auth_session(request: Request, db: Session = Depends(get_db)) -> Optional[SessionInfo]:
    """FastAPI dependency resolving the caller's session; None when unauthenticated."""
    token = _token_from_request(request)
    if not token:
        logger.info("No session token on %s %s", request.method, request.url.path)
        return None
    info = lookup_session(db, token)
    if info is None:
        logger.info("Unknown or expired session token on %s", request.url.path)
        return None
    logger.info("Authenticated user %s on %s", info.user.id, request.url.path)
    return info
