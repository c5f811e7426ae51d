from sqlalchemy import Column, Integer, String, DateTime, ForeignKey

from meeting_reminders.core.clock import utcnow
from meeting_reminders.models.user import Base


class Unsubscription(Base):
    __tablename__ = "unsubscriptions"

    id = Column(Integer, primary_key=True, index=True)
    meeting_id = Column(Integer, ForeignKey("meetings.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    created_at = Column(DateTime, default=utcnow)
