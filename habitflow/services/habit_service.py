"""
habit_service.py — Habits & Streaks tracking
CRUD with soft delete, daily toggles through the entry ledger, and live
streak / completion-rate derivation (backward-looking, never cached).
"""

import logging
from datetime import date

from sqlalchemy.orm import Session

from habitflow.config import COMPLETION_WINDOW_DAYS, STREAK_MILESTONES
from habitflow.models.habit import Habit
from habitflow.models.habit_entry import HabitEntry
from habitflow.services import streaks
from habitflow.services.entry_ledger import EntryLedger
from habitflow.timeutils import today_utc, utcnow

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = {"name", "description", "category", "target_days", "color", "is_active"}


class HabitService:
    @staticmethod
    def create(db: Session, user_id: int, data: dict) -> Habit:
        h = Habit(
            user_id=user_id,
            name=data["name"],
            description=data.get("description"),
            category=data["category"],
            target_days=data.get("target_days") or 30,
            color=data.get("color") or "#10b981",
        )
        try:
            db.add(h)
            db.commit()
            db.refresh(h)
            return h
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def get(db: Session, user_id: int, habit_id: int) -> Habit | None:
        return db.query(Habit).filter_by(id=habit_id, user_id=user_id).first()

    @staticmethod
    def list_active(db: Session, user_id: int) -> list[Habit]:
        return (
            db.query(Habit)
            .filter_by(user_id=user_id, is_active=True)
            .order_by(Habit.created_at.desc(), Habit.id.desc())
            .all()
        )

    @staticmethod
    def get_all(db: Session, user_id: int, today: date | None = None) -> list[dict]:
        """Active habits with today's status, current streak and completion rate."""
        today = today or today_utc()
        result = []
        for h in HabitService.list_active(db, user_id):
            entry = EntryLedger.get(db, h.id, user_id, today)
            result.append({
                **h.to_dict(),
                "completed": bool(entry and entry.completed),
                "streak": HabitService.calculate_streak(db, h.id, user_id, today),
                "completion_rate": HabitService.completion_rate(db, h.id, user_id),
            })
        return result

    @staticmethod
    def update(db: Session, user_id: int, habit_id: int, data: dict) -> Habit | None:
        h = HabitService.get(db, user_id, habit_id)
        if not h:
            return None
        for k, v in data.items():
            if k in _EDITABLE_FIELDS:
                setattr(h, k, v)
        h.updated_at = utcnow()
        try:
            db.commit()
            db.refresh(h)
            return h
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def delete(db: Session, user_id: int, habit_id: int) -> bool:
        """Soft delete: the habit is deactivated so its history stays valid."""
        h = HabitService.get(db, user_id, habit_id)
        if not h or not h.is_active:
            return False
        h.is_active = False
        h.updated_at = utcnow()
        try:
            db.commit()
            return True
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def toggle(
        db: Session,
        user_id: int,
        habit_id: int,
        completed: bool = True,
        day: date | None = None,
        notes: str | None = None,
        today: date | None = None,
    ) -> dict | None:
        """Record a day's completion, then report the resulting streak and milestone."""
        entry = EntryLedger.upsert(db, habit_id, user_id, day or today_utc(), completed, notes)
        if entry is None:
            return None

        streak = HabitService.calculate_streak(db, habit_id, user_id, today)
        reached = completed and streaks.reached_milestone(streak, STREAK_MILESTONES)
        return {
            "entry": entry,
            "streak": streak,
            "milestone_reached": reached,
            "milestone_type": f"{streak} days" if reached else None,
        }

    @staticmethod
    def calculate_streak(db: Session, habit_id: int, user_id: int, today: date | None = None) -> int:
        """Count backward consecutive. 1 day grace period for today."""
        days = EntryLedger.completed_days(db, habit_id, user_id)
        return streaks.current_streak(days, today or today_utc())

    @staticmethod
    def calculate_longest_streak(db: Session, habit_id: int, user_id: int) -> int:
        return streaks.longest_streak(EntryLedger.completed_days(db, habit_id, user_id))

    @staticmethod
    def completion_rate(db: Session, habit_id: int, user_id: int, window_days: int = COMPLETION_WINDOW_DAYS) -> int:
        entries = EntryLedger.list_for_habit(db, habit_id, user_id, limit=window_days)
        return streaks.completion_rate(entries)

    @staticmethod
    def get_history(db: Session, user_id: int, habit_id: int, limit: int = 30) -> list[HabitEntry]:
        return EntryLedger.list_for_habit(db, habit_id, user_id, limit=limit)

    @staticmethod
    def get_streaks(db: Session, user_id: int, today: date | None = None) -> list[dict]:
        return [
            {"habit_id": h.id, "habit": h.name, "streak": HabitService.calculate_streak(db, h.id, user_id, today)}
            for h in HabitService.list_active(db, user_id)
        ]
