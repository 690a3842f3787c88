"""
entry_ledger.py — Per-day habit completion records
One row per (habit, calendar day). Writes are a single atomic
insert-or-update keyed on that pair; every query is scoped by user.
"""

from datetime import date

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from habitflow.models.habit import Habit
from habitflow.models.habit_entry import HabitEntry
from habitflow.timeutils import utcnow


def _insert_for(db: Session):
    dialect = db.get_bind().dialect.name
    if dialect == "postgresql":
        return postgresql.insert
    if dialect == "sqlite":
        return sqlite.insert
    raise NotImplementedError(f"Entry upsert is not supported on the {dialect} dialect")


class EntryLedger:
    @staticmethod
    def upsert(
        db: Session,
        habit_id: int,
        user_id: int,
        day: date,
        completed: bool,
        notes: str | None = None,
    ) -> HabitEntry | None:
        """Insert or overwrite the entry for ``(habit_id, day)``.

        Returns None when the habit does not exist or belongs to someone else.
        """
        owned = db.query(Habit.id).filter(Habit.id == habit_id, Habit.user_id == user_id).first()
        if owned is None:
            return None

        insert = _insert_for(db)
        stmt = insert(HabitEntry).values(
            habit_id=habit_id,
            user_id=user_id,
            date=day,
            completed=completed,
            notes=notes,
            created_at=utcnow(),
        )
        stmt = stmt.on_conflict_do_update(
            index_elements=[HabitEntry.habit_id, HabitEntry.date],
            set_={"completed": stmt.excluded.completed, "notes": stmt.excluded.notes},
            where=HabitEntry.user_id == user_id,
        )
        try:
            db.execute(stmt)
            db.commit()
        except Exception:
            db.rollback()
            raise

        entry = EntryLedger.get(db, habit_id, user_id, day)
        if entry is not None:
            db.refresh(entry)
        return entry

    @staticmethod
    def get(db: Session, habit_id: int, user_id: int, day: date) -> HabitEntry | None:
        return (
            db.query(HabitEntry)
            .filter(HabitEntry.habit_id == habit_id, HabitEntry.user_id == user_id, HabitEntry.date == day)
            .first()
        )

    @staticmethod
    def list_for_habit(db: Session, habit_id: int, user_id: int, limit: int = 30) -> list[HabitEntry]:
        """Most recent first."""
        return (
            db.query(HabitEntry)
            .filter(HabitEntry.habit_id == habit_id, HabitEntry.user_id == user_id)
            .order_by(HabitEntry.date.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def list_for_user_on_date(db: Session, user_id: int, day: date) -> list[HabitEntry]:
        return (
            db.query(HabitEntry)
            .filter(HabitEntry.user_id == user_id, HabitEntry.date == day)
            .all()
        )

    @staticmethod
    def completed_days(db: Session, habit_id: int, user_id: int) -> list[date]:
        """All completed days for a habit, newest first."""
        rows = (
            db.query(HabitEntry.date)
            .filter(
                HabitEntry.habit_id == habit_id,
                HabitEntry.user_id == user_id,
                HabitEntry.completed == True,  # noqa: E712
            )
            .order_by(HabitEntry.date.desc())
            .all()
        )
        return [r[0] for r in rows]

    @staticmethod
    def count_completed(db: Session, user_id: int) -> int:
        return (
            db.query(HabitEntry)
            .filter(HabitEntry.user_id == user_id, HabitEntry.completed == True)  # noqa: E712
            .count()
        )
