"""One-time startup provisioning."""

import logging

from sqlalchemy.orm import Session

from habitflow.config import DEMO_EMAIL, DEMO_PASSWORD, DEMO_USERNAME
from habitflow.models.user import User
from habitflow.services.user_service import UserService

logger = logging.getLogger(__name__)


def ensure_demo_user(db: Session) -> User:
    """Create or return the demo account. Safe to call on every startup."""
    user = UserService.get_by_username(db, DEMO_USERNAME)
    if user:
        return user

    user = UserService.create(db, DEMO_USERNAME, DEMO_EMAIL, DEMO_PASSWORD)
    if user is None:
        # Lost a race with another worker, or the email is already taken
        user = UserService.get_by_username(db, DEMO_USERNAME)
        if user is None:
            raise RuntimeError(f"Could not provision demo user {DEMO_USERNAME!r}")
        return user

    logger.info("Created demo user %s (id=%s)", user.username, user.id)
    return user
