import logging
from functools import lru_cache

import bcrypt
from fastapi import Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from habitflow.config import BCRYPT_ROUNDS, SESSION_COOKIE_NAME
from habitflow.database import get_db
from habitflow.models.session import AuthSession
from habitflow.services.session_service import SessionStore

logger = logging.getLogger(__name__)


def hash_password(password: str) -> str:
    """Hash a plain-text password using bcrypt."""
    # Ensure it doesn't exceed 72 bytes to prevent bcrypt ValueError
    pw_bytes = password.encode("utf-8")[:72]
    hashed = bcrypt.hashpw(pw_bytes, bcrypt.gensalt(rounds=BCRYPT_ROUNDS))
    return hashed.decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain-text password against a bcrypt hash."""
    try:
        pw_bytes = plain_password.encode("utf-8")[:72]
        hash_bytes = hashed_password.encode("utf-8")
        return bcrypt.checkpw(pw_bytes, hash_bytes)
    except ValueError as e:
        logger.warning("Bcrypt verification error: %s", e)
        return False


@lru_cache(maxsize=1)
def dummy_hash() -> str:
    """A digest to verify against when the user does not exist, so both paths cost one bcrypt check."""
    return hash_password("habitflow-placeholder-password")


def extract_session_token(headers, cookies, query_params=None) -> str | None:
    """Pull a session token from the cookie, the query string, or a Bearer header, in that order."""
    token = cookies.get(SESSION_COOKIE_NAME)
    if not token and query_params is not None:
        token = query_params.get("sessionId") or query_params.get("token")
    if not token:
        auth_header = headers.get("Authorization") or headers.get("authorization")
        if auth_header and auth_header.startswith("Bearer "):
            token = auth_header.split(" ", 1)[1].strip()
    return token or None


async def get_current_session(request: Request, db: Session = Depends(get_db)) -> AuthSession:
    """
    FastAPI dependency — reads the session cookie (or the Bearer header when the
    cookie is absent) and returns the live session.
    Raises HTTP 401 if the token is missing, unknown or expired.
    """
    token = extract_session_token(request.headers, request.cookies)
    if not token:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="No session token provided",
            headers={"WWW-Authenticate": "Bearer"},
        )

    session = SessionStore.get(db, token)
    if session is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired session",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return session


async def get_current_user(session: AuthSession = Depends(get_current_session)) -> int:
    """FastAPI dependency — returns the authenticated user_id."""
    return session.user_id
