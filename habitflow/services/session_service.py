"""
session_service.py — Server-side session store
Opaque, unguessable session tokens bound to a user id with a fixed absolute
expiry. Expired rows are filtered at query time and swept periodically.
"""

import logging
import secrets
from datetime import timedelta

from sqlalchemy.orm import Session

from habitflow.config import SESSION_TTL_DAYS
from habitflow.models.session import AuthSession
from habitflow.timeutils import utcnow

logger = logging.getLogger(__name__)

SESSION_PREFIX = "sess_"


class SessionStore:
    @staticmethod
    def _new_id() -> str:
        return SESSION_PREFIX + secrets.token_urlsafe(32)

    @staticmethod
    def create(db: Session, user_id: int, ttl: timedelta | None = None) -> AuthSession:
        """Persist a new session expiring at ``now + ttl`` (default SESSION_TTL_DAYS)."""
        ttl = ttl if ttl is not None else timedelta(days=SESSION_TTL_DAYS)
        now = utcnow()
        s = AuthSession(id=SessionStore._new_id(), user_id=user_id, created_at=now, expires_at=now + ttl)
        try:
            db.add(s)
            db.commit()
            db.refresh(s)
            return s
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def get(db: Session, session_id: str | None) -> AuthSession | None:
        """Return the session only while ``now < expires_at``."""
        if not session_id:
            return None
        return (
            db.query(AuthSession)
            .filter(AuthSession.id == session_id, AuthSession.expires_at > utcnow())
            .first()
        )

    @staticmethod
    def delete(db: Session, session_id: str) -> bool:
        try:
            deleted = db.query(AuthSession).filter(AuthSession.id == session_id).delete(synchronize_session=False)
            db.commit()
            return deleted > 0
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def delete_for_user(db: Session, user_id: int) -> int:
        try:
            deleted = db.query(AuthSession).filter(AuthSession.user_id == user_id).delete(synchronize_session=False)
            db.commit()
            return deleted
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def sweep_expired(db: Session) -> int:
        """Delete every session whose expiry has passed; returns the number removed."""
        try:
            deleted = db.query(AuthSession).filter(AuthSession.expires_at <= utcnow()).delete(synchronize_session=False)
            db.commit()
            return deleted
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def active_user_ids(db: Session) -> list[int]:
        rows = (
            db.query(AuthSession.user_id)
            .filter(AuthSession.expires_at > utcnow())
            .distinct()
            .all()
        )
        return [r[0] for r in rows]
