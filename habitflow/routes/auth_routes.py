# ---------- routes/auth_routes.py ----------
"""
Auth routes — registration, login/logout with server-side sessions and
password reset. The session id travels in an httpOnly cookie.
"""
import logging
import re

from fastapi import APIRouter, Depends, HTTPException, Response, status
from pydantic import BaseModel, Field, field_validator, model_validator
from sqlalchemy.orm import Session

from habitflow.auth import get_current_session
from habitflow.config import COOKIE_SECURE, EXPOSE_RESET_TOKEN, SESSION_COOKIE_NAME, SESSION_TTL_DAYS
from habitflow.database import get_db
from habitflow.models.session import AuthSession
from habitflow.services.session_service import SessionStore
from habitflow.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["Auth"])

_EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
RESET_REQUESTED_MESSAGE = "If an account with that email exists, a password reset link has been sent."


# ── Pydantic schemas ──────────────────────────────────────────────
class RegisterRequest(BaseModel):
    username: str = Field(min_length=1, max_length=64)
    email: str
    password: str = Field(min_length=8, max_length=128)
    confirm_password: str

    @field_validator("username")
    @classmethod
    def username_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Username is required")
        return v.strip()

    @field_validator("email")
    @classmethod
    def email_format(cls, v: str) -> str:
        if not _EMAIL_RE.match(v.strip()):
            raise ValueError("Invalid email address")
        return v.strip().lower()

    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class LoginRequest(BaseModel):
    username: str = Field(min_length=1)
    password: str = Field(min_length=1)


class ForgotPasswordRequest(BaseModel):
    email: str = Field(min_length=1)


class ResetPasswordRequest(BaseModel):
    token: str = Field(min_length=1)
    new_password: str = Field(min_length=8, max_length=128)


# ── Helpers ───────────────────────────────────────────────────────
def _set_session_cookie(response: Response, session: AuthSession):
    response.set_cookie(
        key=SESSION_COOKIE_NAME,
        value=session.id,
        httponly=True,
        secure=COOKIE_SECURE,
        samesite="lax",
        max_age=SESSION_TTL_DAYS * 24 * 60 * 60,
    )


def _clear_session_cookie(response: Response):
    response.delete_cookie(key=SESSION_COOKIE_NAME, httponly=True, secure=COOKIE_SECURE, samesite="lax")


# ── Routes ────────────────────────────────────────────────────────
@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest, response: Response, db: Session = Depends(get_db)):
    """Create an account and sign it in."""
    try:
        if UserService.exists(db, body.username, body.email):
            raise HTTPException(status_code=409, detail="User already exists with this username or email")

        user = UserService.create(db, body.username, body.email, body.password)
        if user is None:
            raise HTTPException(status_code=409, detail="User already exists with this username or email")

        session = SessionStore.create(db, user.id)
        _set_session_cookie(response, session)
        logger.info("Registered user %s (id=%s)", user.username, user.id)
        return {"status": "success", "data": {"user": user.to_dict(), "session_id": session.id}}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Registration failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to register user")


@router.post("/login")
async def login(body: LoginRequest, response: Response, db: Session = Depends(get_db)):
    """Authenticate with username + password and start a session."""
    try:
        user = UserService.authenticate(db, body.username, body.password)
        if user is None:
            logger.warning("Failed login for username %r", body.username)
            raise HTTPException(status_code=401, detail="Invalid username or password")

        session = SessionStore.create(db, user.id)
        _set_session_cookie(response, session)
        logger.info("User %s logged in", user.username)
        return {"status": "success", "data": {"user": user.to_dict(), "session_id": session.id}}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Login failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to login")


@router.post("/logout")
async def logout(
    response: Response,
    session: AuthSession = Depends(get_current_session),
    db: Session = Depends(get_db),
):
    try:
        SessionStore.delete(db, session.id)
        _clear_session_cookie(response)
        logger.info("User %s logged out", session.user_id)
        return {"status": "success", "message": "Logged out successfully"}
    except Exception as e:
        logger.exception("Logout failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to logout")


@router.get("/me")
async def me(session: AuthSession = Depends(get_current_session), db: Session = Depends(get_db)):
    user = UserService.get(db, session.user_id)
    if user is None:
        raise HTTPException(status_code=401, detail="User not found")
    return {"status": "success", "data": {"user": user.to_dict()}}


@router.post("/forgot-password")
async def forgot_password(body: ForgotPasswordRequest, db: Session = Depends(get_db)):
    """Issue a single-use reset token. The response never reveals whether the email is registered."""
    try:
        user = UserService.get_by_email(db, body.email)
        data = {"message": RESET_REQUESTED_MESSAGE}
        if user is not None:
            token = UserService.create_reset_token(db, user.id)
            logger.info("Password reset requested for user %s", user.id)
            if EXPOSE_RESET_TOKEN:
                data["reset_token"] = token.token
        return {"status": "success", "data": data}
    except Exception as e:
        logger.exception("Password reset request failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to process password reset request")


@router.post("/reset-password")
async def reset_password(body: ResetPasswordRequest, db: Session = Depends(get_db)):
    try:
        if not UserService.reset_password(db, body.token, body.new_password):
            raise HTTPException(status_code=400, detail="Invalid or expired reset token")
        return {"status": "success", "message": "Password reset successfully"}
    except HTTPException:
        raise
    except Exception as e:
        logger.exception("Password reset failed: %s", e)
        raise HTTPException(status_code=500, detail="Failed to reset password")
