"""Shared fixtures: an in-memory database, a recording mailer and record factories."""

import datetime
import json
import os

# Must be set before meeting_reminders.core.config is imported
os.environ.setdefault("SECRET_KEY", "test-secret")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from meeting_reminders.models.course import Course, Enrolment
from meeting_reminders.models.meeting import GuestEmail, Meeting, MeetingNotification, MeetingReminder
from meeting_reminders.models.task import AdhocTask
from meeting_reminders.models.user import Base, User
from meeting_reminders.models import subscription  # noqa: F401

NOW = datetime.datetime(2026, 3, 2, 9, 0)


class RecordingMailer:
    """Stands in for Mailer and keeps every message it was asked to send."""

    def __init__(self):
        self.sent = []

    async def send(self, sender, recipient, subject, text, html):
        self.sent.append({
            "sender": sender,
            "recipient": recipient,
            "subject": subject,
            "text": text,
            "html": html,
        })


class Factory:
    def __init__(self, db):
        self.db = db
        self._users = 0

    def course(self, fullname="Introduction to Astronomy", shortname="ASTRO101"):
        course = Course(fullname=fullname, shortname=shortname)
        self.db.add(course)
        self.db.commit()
        return course

    def meeting(self, course=None, name="Weekly seminar", opening_time=NOW + datetime.timedelta(hours=1),
                reminder_enabled=True, guests_enabled=False):
        course = course or self.course()
        meeting = Meeting(course_id=course.id, name=name, opening_time=opening_time)
        self.db.add(meeting)
        self.db.flush()
        self.db.add(MeetingNotification(
            meeting_id=meeting.id,
            reminder_enabled=reminder_enabled,
            reminder_to_guests_enabled=guests_enabled,
        ))
        self.db.commit()
        return meeting

    def reminder(self, meeting, timespan=datetime.timedelta(hours=2), last_sent=None):
        reminder = MeetingReminder(meeting_id=meeting.id, timespan=timespan, last_sent=last_sent)
        self.db.add(reminder)
        self.db.commit()
        return reminder

    def user(self, email=None):
        self._users += 1
        user = User(email=email or f"user{self._users:04d}@example.com", name=f"User {self._users}")
        self.db.add(user)
        self.db.flush()
        return user

    def enrol(self, course, count=1, role="student", is_active=True):
        users = []
        for _ in range(count):
            user = self.user()
            self.db.add(Enrolment(course_id=course.id, user_id=user.id, role=role, is_active=is_active))
            users.append(user)
        self.db.commit()
        return users

    def guests(self, meeting, emails, is_enabled=True):
        for email in emails:
            self.db.add(GuestEmail(meeting_id=meeting.id, email=email, is_enabled=is_enabled))
        self.db.commit()

    def queued_tasks(self, classname=None):
        query = self.db.query(AdhocTask).order_by(AdhocTask.id)
        if classname:
            query = query.filter(AdhocTask.classname == classname)
        return [(task.classname, json.loads(task.customdata)) for task in query.all()]


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def factory(db):
    return Factory(db)


@pytest.fixture
def mailer():
    return RecordingMailer()
