"""
nudge_service.py — Stored AI nudges
"""

from sqlalchemy.orm import Session

from habitflow.models.ai_nudge import AiNudge

NUDGE_TYPES = ("motivation", "reminder", "tip", "challenge")


class NudgeService:
    @staticmethod
    def get_all(db: Session, user_id: int, limit: int = 10) -> list[AiNudge]:
        """Undismissed nudges, newest first."""
        return (
            db.query(AiNudge)
            .filter_by(user_id=user_id, is_dismissed=False)
            .order_by(AiNudge.created_at.desc(), AiNudge.id.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def create(
        db: Session,
        user_id: int,
        type: str,
        title: str,
        message: str,
        habit_id: int | None = None,
        action_label: str | None = None,
    ) -> AiNudge:
        n = AiNudge(
            user_id=user_id,
            habit_id=habit_id,
            type=type if type in NUDGE_TYPES else "motivation",
            title=title,
            message=message,
            action_label=action_label,
        )
        try:
            db.add(n)
            db.commit()
            db.refresh(n)
            return n
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def _set_flag(db: Session, user_id: int, nudge_id: int, **flags) -> bool:
        n = db.query(AiNudge).filter_by(id=nudge_id, user_id=user_id).first()
        if not n:
            return False
        for k, v in flags.items():
            setattr(n, k, v)
        try:
            db.commit()
            return True
        except Exception:
            db.rollback()
            raise

    @staticmethod
    def mark_read(db: Session, user_id: int, nudge_id: int) -> bool:
        return NudgeService._set_flag(db, user_id, nudge_id, is_read=True)

    @staticmethod
    def dismiss(db: Session, user_id: int, nudge_id: int) -> bool:
        return NudgeService._set_flag(db, user_id, nudge_id, is_dismissed=True)
