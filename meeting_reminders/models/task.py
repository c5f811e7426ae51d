from sqlalchemy import Column, Integer, String, DateTime, Text

from meeting_reminders.core.clock import utcnow
from meeting_reminders.models.user import Base


class AdhocTask(Base):
    """A queued unit of work, run once by the adhoc task runner."""
    __tablename__ = "adhoc_tasks"

    id = Column(Integer, primary_key=True, index=True)
    classname = Column(String(100), nullable=False, index=True)
    customdata = Column(Text, nullable=False)
    next_run_time = Column(DateTime, default=utcnow, nullable=False, index=True)
    time_started = Column(DateTime, nullable=True)
    attempts = Column(Integer, default=0, nullable=False)
    fail_delay = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow)
