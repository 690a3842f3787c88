# Import all models so they register with SQLAlchemy Base.metadata
# This ensures Base.metadata.create_all() creates all tables

from habitflow.models.user import User
from habitflow.models.session import AuthSession
from habitflow.models.password_reset_token import PasswordResetToken
from habitflow.models.habit import Habit
from habitflow.models.habit_entry import HabitEntry
from habitflow.models.ai_nudge import AiNudge
from habitflow.models.user_stats import UserStats

__all__ = [
    "User",
    "AuthSession",
    "PasswordResetToken",
    "Habit",
    "HabitEntry",
    "AiNudge",
    "UserStats",
]
