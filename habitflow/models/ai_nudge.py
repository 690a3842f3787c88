from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey
from habitflow.database import Base
from habitflow.timeutils import utcnow


class AiNudge(Base):
    __tablename__ = "ai_nudges"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    habit_id = Column(Integer, ForeignKey("habits.id", ondelete="CASCADE"), nullable=True)
    type = Column(String(20), nullable=False)  # motivation/reminder/tip/challenge
    title = Column(String(300), nullable=False)
    message = Column(Text, nullable=False)
    action_label = Column(String(100), nullable=True)
    is_read = Column(Boolean, nullable=False, default=False)
    is_dismissed = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, nullable=False, default=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "habit_id": self.habit_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "action_label": self.action_label,
            "is_read": self.is_read,
            "is_dismissed": self.is_dismissed,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
