from sqlalchemy import Column, Integer, String, DateTime, ForeignKey
from habitflow.database import Base
from habitflow.timeutils import utcnow


class AuthSession(Base):
    __tablename__ = "sessions"

    id = Column(String(100), primary_key=True)  # opaque token, also the cookie value
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    expires_at = Column(DateTime, nullable=False, index=True)
    created_at = Column(DateTime, nullable=False, default=utcnow)
