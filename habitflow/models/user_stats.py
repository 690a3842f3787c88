from sqlalchemy import Column, Integer, DateTime, ForeignKey
from habitflow.database import Base
from habitflow.timeutils import utcnow


class UserStats(Base):
    """Cached per-user aggregates. Not authoritative; see StatsService."""

    __tablename__ = "user_stats"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False)
    total_habits = Column(Integer, nullable=False, default=0)
    active_habits = Column(Integer, nullable=False, default=0)
    longest_streak = Column(Integer, nullable=False, default=0)
    current_streak = Column(Integer, nullable=False, default=0)
    total_completions = Column(Integer, nullable=False, default=0)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "total_habits": self.total_habits,
            "active_habits": self.active_habits,
            "longest_streak": self.longest_streak,
            "current_streak": self.current_streak,
            "total_completions": self.total_completions,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
