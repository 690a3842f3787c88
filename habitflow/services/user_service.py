"""
user_service.py — Accounts, login and password resets
"""

import logging
import secrets
from datetime import timedelta

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from habitflow.auth import dummy_hash, hash_password, verify_password
from habitflow.config import PASSWORD_RESET_TTL_MINUTES
from habitflow.models.password_reset_token import PasswordResetToken
from habitflow.models.user import User
from habitflow.services.session_service import SessionStore
from habitflow.timeutils import utcnow

logger = logging.getLogger(__name__)


class UserService:
    @staticmethod
    def get(db: Session, user_id: int) -> User | None:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_by_username(db: Session, username: str) -> User | None:
        return db.query(User).filter(User.username == username.strip()).first()

    @staticmethod
    def get_by_email(db: Session, email: str) -> User | None:
        return db.query(User).filter(func.lower(User.email) == email.strip().lower()).first()

    @staticmethod
    def exists(db: Session, username: str, email: str) -> bool:
        return UserService.get_by_username(db, username) is not None or UserService.get_by_email(db, email) is not None

    @staticmethod
    def create(db: Session, username: str, email: str, password: str) -> User | None:
        """Create a user with a hashed password. Returns None if the username or email is taken."""
        u = User(
            username=username.strip(),
            email=email.strip().lower(),
            hashed_password=hash_password(password),
        )
        try:
            db.add(u)
            db.commit()
            db.refresh(u)
            return u
        except IntegrityError:
            db.rollback()
            return None

    @staticmethod
    def authenticate(db: Session, username: str, password: str) -> User | None:
        """Check credentials and stamp ``last_login_at``. A missing user and a wrong password look the same."""
        u = UserService.get_by_username(db, username)
        if u is None:
            verify_password(password, dummy_hash())
            return None
        if not verify_password(password, u.hashed_password):
            return None

        try:
            u.last_login_at = utcnow()
            db.commit()
            db.refresh(u)
        except Exception:
            db.rollback()
            raise
        return u

    # ── Password reset ────────────────────────────────────────────
    @staticmethod
    def create_reset_token(db: Session, user_id: int, ttl: timedelta | None = None) -> PasswordResetToken:
        ttl = ttl if ttl is not None else timedelta(minutes=PASSWORD_RESET_TTL_MINUTES)
        t = PasswordResetToken(
            user_id=user_id,
            token=secrets.token_hex(32),
            expires_at=utcnow() + ttl,
        )
        try:
            db.add(t)
            db.commit()
            db.refresh(t)
            return t
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def get_valid_reset_token(db: Session, token: str) -> PasswordResetToken | None:
        return (
            db.query(PasswordResetToken)
            .filter(
                PasswordResetToken.token == token,
                PasswordResetToken.used == False,  # noqa: E712
                PasswordResetToken.expires_at > utcnow(),
            )
            .first()
        )

    @staticmethod
    def reset_password(db: Session, token: str, new_password: str) -> bool:
        """Consume a reset token: set the new password, burn the token and end every session of that user.

        The token is burnt with a single conditional UPDATE, so of two concurrent
        resets with the same token only one can succeed.
        """
        t = UserService.get_valid_reset_token(db, token)
        if t is None:
            return False

        u = UserService.get(db, t.user_id)
        if u is None:
            return False

        digest = hash_password(new_password)
        try:
            consumed = (
                db.query(PasswordResetToken)
                .filter(
                    PasswordResetToken.id == t.id,
                    PasswordResetToken.used == False,  # noqa: E712
                    PasswordResetToken.expires_at > utcnow(),
                )
                .update({PasswordResetToken.used: True}, synchronize_session=False)
            )
            if consumed != 1:
                db.rollback()
                logger.warning("Reset token for user %s was already used", u.id)
                return False
            u.hashed_password = digest
            db.commit()
        except Exception:
            db.rollback()
            raise

        ended = SessionStore.delete_for_user(db, u.id)
        logger.info("Password reset for user %s; %d session(s) ended", u.id, ended)
        return True
