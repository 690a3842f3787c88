from sqlalchemy import Column, Integer, String, Text, DateTime, Boolean, ForeignKey
from habitflow.database import Base
from habitflow.timeutils import utcnow


class Habit(Base):
    __tablename__ = "habits"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    name = Column(String(200), nullable=False)
    description = Column(Text, nullable=True)
    category = Column(String(50), nullable=False)  # fitness/nutrition/mindfulness/productivity/sleep/...
    target_days = Column(Integer, nullable=False, default=30)
    color = Column(String(20), default="#10b981")
    is_active = Column(Boolean, nullable=False, default=True)  # soft delete flag
    created_at = Column(DateTime, nullable=False, default=utcnow)
    updated_at = Column(DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "target_days": self.target_days,
            "color": self.color,
            "is_active": self.is_active,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
