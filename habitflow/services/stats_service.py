"""
stats_service.py — Per-user aggregates
Live values are always recomputed from habit entries. The ``user_stats`` row
is a best-effort cache refreshed on habit changes and toggles; it is only
served where a cheap snapshot is enough (the WebSocket welcome message).
"""

from datetime import date

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from habitflow.models.habit import Habit
from habitflow.models.user_stats import UserStats
from habitflow.services import streaks
from habitflow.services.entry_ledger import EntryLedger
from habitflow.services.habit_service import HabitService
from habitflow.timeutils import today_utc, utcnow


class StatsService:
    @staticmethod
    def compute(db: Session, user_id: int, today: date | None = None) -> dict:
        """Live aggregates derived from the ledger."""
        today = today or today_utc()
        all_habits = db.query(Habit).filter_by(user_id=user_id).all()
        active = [h for h in all_habits if h.is_active]

        current = [HabitService.calculate_streak(db, h.id, user_id, today) for h in active]
        longest = [HabitService.calculate_longest_streak(db, h.id, user_id) for h in all_habits]

        return {
            "total_habits": len(all_habits),
            "active_habits": len(active),
            "current_streak": max(current, default=0),
            "longest_streak": max(longest, default=0),
            "total_completions": EntryLedger.count_completed(db, user_id),
        }

    @staticmethod
    def refresh(db: Session, user_id: int, today: date | None = None) -> UserStats:
        """Recompute the cached row from scratch."""
        values = StatsService.compute(db, user_id, today)
        row = db.query(UserStats).filter_by(user_id=user_id).first()
        try:
            if row is None:
                row = UserStats(user_id=user_id, **values)
                db.add(row)
            else:
                for k, v in values.items():
                    setattr(row, k, v)
                row.updated_at = utcnow()
            db.commit()
            db.refresh(row)
            return row
        except IntegrityError:
            # Another request created the row first
            db.rollback()
            row = db.query(UserStats).filter_by(user_id=user_id).one()
            return row
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def cached(db: Session, user_id: int) -> dict:
        row = db.query(UserStats).filter_by(user_id=user_id).first()
        if row is None:
            row = StatsService.refresh(db, user_id)
        return row.to_dict()

    @staticmethod
    def get_stats(db: Session, user_id: int, today: date | None = None) -> dict:
        """Live stats plus today's completion summary; also refreshes the cache."""
        today = today or today_utc()
        row = StatsService.refresh(db, user_id, today)

        active_ids = {h.id for h in HabitService.list_active(db, user_id)}
        todays = EntryLedger.list_for_user_on_date(db, user_id, today)
        completed_today = sum(1 for e in todays if e.completed and e.habit_id in active_ids)
        total = len(active_ids)

        return {
            **row.to_dict(),
            "completed_today": completed_today,
            "total_habits_today": total,
            "today_completion_rate": streaks.percentage(completed_today, total),
        }
