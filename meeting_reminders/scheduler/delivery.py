import asyncio
import logging
from typing import Dict, Iterable

from sqlalchemy import select
from sqlalchemy.orm import Session

from meeting_reminders.core.config import EMAIL_UNSUBSCRIBE_MESSAGE
from meeting_reminders.email.utils import Mailer, get_noreply_sender
from meeting_reminders.models.meeting import Meeting
from meeting_reminders.models.user import User
from meeting_reminders.scheduler.queue import TaskHandler
from meeting_reminders.schemas.reminder import GuestReminderData, UserReminderData, ReminderMessageData
from meeting_reminders.services.subscription import get_unsubscribe_url
from meeting_reminders.services.templating import html_to_text, replace_vars_in_text

SEND_EMAIL_REMINDERS = "send_email_reminders"
SEND_EMAIL_REMINDERS_MESSAGE = "send_email_reminders_message"


def get_meeting(db: Session, meeting_id: int) -> Meeting:
    # Raises NoResultFound when the meeting is gone
    return db.execute(select(Meeting).where(Meeting.id == meeting_id)).scalar_one()


def compose_message(html_message: str, meeting_id: int, email: str) -> str:
    """Append the recipient's own unsubscribe notice to the shared body."""
    unsubscribe_url = get_unsubscribe_url(meeting_id, email)
    notice = replace_vars_in_text({"unsubscribeurl": unsubscribe_url}, EMAIL_UNSUBSCRIBE_MESSAGE)
    return html_message + "<br><br>" + notice


class _ReminderSender:
    def __init__(self, db: Session, mailer: Mailer):
        self.db = db
        self.mailer = mailer

    async def _send_all(self, data: ReminderMessageData, meeting: Meeting, emails: Iterable[str]) -> int:
        sender = get_noreply_sender()
        sent = 0
        for email in emails:
            full_message = compose_message(data.html_message, meeting.id, email)
            await self.mailer.send(
                sender,
                email,
                data.subject,
                html_to_text(full_message),
                full_message,
            )
            sent += 1
        return sent


class SendEmailReminders(_ReminderSender):
    """Send the reminder to a batch of guest addresses."""

    def execute(self, data: GuestReminderData) -> int:
        meeting = get_meeting(self.db, data.instance_id)
        sent = asyncio.run(self._send_all(data, meeting, data.emails))
        logging.info(f"✉️ Sent {sent} guest reminders for meeting {meeting.id} (reminder {data.reminder_id})")
        return sent


class SendEmailRemindersMessage(_ReminderSender):
    """Send the reminder to a batch of enrolled users."""

    def execute(self, data: UserReminderData) -> int:
        meeting = get_meeting(self.db, data.instance_id)
        emails = []
        for user_id in data.user_ids:
            user = self.db.get(User, user_id)
            if user is None:
                logging.warning(f"⚠️ User {user_id} no longer exists, skipping reminder {data.reminder_id}")
                continue
            emails.append(user.email)
        sent = asyncio.run(self._send_all(data, meeting, emails))
        logging.info(f"✉️ Sent {sent} user reminders for meeting {meeting.id} (reminder {data.reminder_id})")
        return sent


def build_task_handlers(mailer: Mailer) -> Dict[str, TaskHandler]:
    """Handlers for the adhoc task runner, keyed by task classname."""

    def send_email_reminders(db: Session, customdata: dict):
        SendEmailReminders(db, mailer).execute(GuestReminderData(**customdata))

    def send_email_reminders_message(db: Session, customdata: dict):
        SendEmailRemindersMessage(db, mailer).execute(UserReminderData(**customdata))

    return {
        SEND_EMAIL_REMINDERS: send_email_reminders,
        SEND_EMAIL_REMINDERS_MESSAGE: send_email_reminders_message,
    }
