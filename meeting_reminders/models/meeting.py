from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, Boolean, Interval
from sqlalchemy.orm import relationship

from meeting_reminders.models.course import Course
from meeting_reminders.models.user import Base


class Meeting(Base):
    __tablename__ = "meetings"
    id = Column(Integer, primary_key=True, index=True)
    course_id = Column(Integer, ForeignKey("courses.id"), nullable=False)
    name = Column(String(255), nullable=False)
    opening_time = Column(DateTime, nullable=True)
    closing_time = Column(DateTime, nullable=True)

    course = relationship(Course)

    # Relationships
    notification = relationship("MeetingNotification", back_populates="meeting", uselist=False)
    reminders = relationship("MeetingReminder", back_populates="meeting", order_by="MeetingReminder.id")
    guest_emails = relationship("GuestEmail", back_populates="meeting")


class MeetingNotification(Base):
    """Per-meeting reminder switches."""
    __tablename__ = "meeting_notifications"
    id = Column(Integer, primary_key=True)
    meeting_id = Column(Integer, ForeignKey("meetings.id"), nullable=False, unique=True)
    reminder_enabled = Column(Boolean, default=False, nullable=False)
    reminder_to_guests_enabled = Column(Boolean, default=False, nullable=False)
    meeting = relationship("Meeting", back_populates="notification")


class MeetingReminder(Base):
    __tablename__ = "meeting_reminders"
    id = Column(Integer, primary_key=True)
    meeting_id = Column(Integer, ForeignKey("meetings.id"), nullable=False, index=True)
    # How long before opening_time the reminder goes out
    timespan = Column(Interval, nullable=False)
    # Set once when the reminder fires, never reset
    last_sent = Column(DateTime, nullable=True)
    meeting = relationship("Meeting", back_populates="reminders")


class GuestEmail(Base):
    __tablename__ = "guest_emails"
    id = Column(Integer, primary_key=True)
    meeting_id = Column(Integer, ForeignKey("meetings.id"), nullable=False, index=True)
    email = Column(String(255), nullable=False)
    is_enabled = Column(Boolean, default=True, nullable=False)
    meeting = relationship("Meeting", back_populates="guest_emails")
