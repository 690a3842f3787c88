"""
progress_service.py — Weekly & monthly completion charts
Percentages are completed entries over active habits per day.
"""

from datetime import date, timedelta

from sqlalchemy.orm import Session

from habitflow.models.habit_entry import HabitEntry
from habitflow.services import streaks
from habitflow.services.habit_service import HabitService
from habitflow.timeutils import today_utc


class ProgressService:
    @staticmethod
    def _completed_by_day(db: Session, user_id: int, start: date, end: date, habit_ids: set[int]) -> dict[date, int]:
        rows = (
            db.query(HabitEntry.date, HabitEntry.habit_id)
            .filter(
                HabitEntry.user_id == user_id,
                HabitEntry.completed == True,  # noqa: E712
                HabitEntry.date >= start,
                HabitEntry.date <= end,
            )
            .all()
        )
        counts: dict[date, int] = {}
        for d, habit_id in rows:
            if habit_id in habit_ids:
                counts[d] = counts.get(d, 0) + 1
        return counts

    @staticmethod
    def weekly(db: Session, user_id: int, today: date | None = None) -> list[dict]:
        """Last 7 days, oldest first."""
        today = today or today_utc()
        start = today - timedelta(days=6)
        habit_ids = {h.id for h in HabitService.list_active(db, user_id)}
        total = len(habit_ids)
        counts = ProgressService._completed_by_day(db, user_id, start, today, habit_ids)

        points = []
        for i in range(7):
            d = start + timedelta(days=i)
            completed = counts.get(d, 0)
            points.append({
                "date": d.isoformat(),
                "day": d.strftime("%a"),
                "completed": completed,
                "total": total,
                "percentage": streaks.percentage(completed, total),
            })
        return points

    @staticmethod
    def monthly(db: Session, user_id: int, today: date | None = None) -> list[dict]:
        """Four 7-day buckets ending today, labelled Week 1 (oldest) to Week 4."""
        today = today or today_utc()
        start = today - timedelta(days=27)
        habit_ids = {h.id for h in HabitService.list_active(db, user_id)}
        counts = ProgressService._completed_by_day(db, user_id, start, today, habit_ids)

        buckets = []
        for week in range(4):
            week_start = start + timedelta(days=week * 7)
            completed = sum(counts.get(week_start + timedelta(days=i), 0) for i in range(7))
            possible = len(habit_ids) * 7
            buckets.append({
                "date": f"Week {week + 1}",
                "start": week_start.isoformat(),
                "end": (week_start + timedelta(days=6)).isoformat(),
                "completed": completed,
                "total": possible,
                "percentage": streaks.percentage(completed, possible),
            })
        return buckets
