from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy import update
from sqlalchemy.orm import Session
from typing import Callable, Dict, Iterator, List, Sequence
import datetime
import logging

from meeting_reminders.core.clock import utcnow
from meeting_reminders.core.config import (
    ADHOC_TASK_SECONDS,
    DATE_FORMAT,
    MAX_EMAIL_PER_TASK,
    REMINDER_CHECK_MINUTES,
    REMINDER_EMAIL_TEMPLATE,
    REMINDER_SUBJECT_TEMPLATE,
    SITE_URL,
    plugin_is_enabled,
)
from meeting_reminders.core.db import SessionLocal
from meeting_reminders.email.utils import Mailer
from meeting_reminders.models.meeting import Meeting, MeetingNotification, MeetingReminder, GuestEmail
from meeting_reminders.scheduler.delivery import (
    SEND_EMAIL_REMINDERS,
    SEND_EMAIL_REMINDERS_MESSAGE,
    build_task_handlers,
    get_meeting,
)
from meeting_reminders.scheduler.queue import queue_adhoc_task, run_adhoc_tasks
from meeting_reminders.schemas.reminder import GuestReminderData, UserReminderData
from meeting_reminders.services.enrolment import EnrolmentService, JOIN_CAPABILITY
from meeting_reminders.services.subscription import SubscriptionService
from meeting_reminders.services.templating import replace_vars_in_text

scheduler = BackgroundScheduler()


def chunked(items: Sequence, size: int) -> Iterator[List]:
    for i in range(0, len(items), size):
        yield list(items[i:i + size])


def reminder_start(opening_time: datetime.datetime, timespan: datetime.timedelta) -> datetime.datetime:
    return opening_time - timespan


def is_reminder_due(reminder: MeetingReminder, opening_time: datetime.datetime, now: datetime.datetime) -> bool:
    if reminder.last_sent is not None:
        return False
    return now >= reminder_start(opening_time, reminder.timespan)


class CheckEmailsReminder:
    """
    Periodic scan that queues reminder emails once a reminder's window opens.

    Every collaborator is passed in so the scan can run against any session,
    queue or subscription source.
    """

    def __init__(
        self,
        db: Session,
        enrolments: EnrolmentService,
        subscriptions: SubscriptionService,
        is_enabled: Callable[[], bool] = plugin_is_enabled,
        enqueue: Callable = None,
        clock: Callable[[], datetime.datetime] = utcnow,
    ):
        self.db = db
        self.enrolments = enrolments
        self.subscriptions = subscriptions
        self.is_enabled = is_enabled
        self.clock = clock
        self.enqueue = enqueue or (
            lambda classname, data: queue_adhoc_task(db, classname, data, run_at=self.clock())
        )

    # ---------------------------------------------------------
    #                 MESSAGE CONTENT
    # ---------------------------------------------------------
    def get_string_vars(self, meeting: Meeting) -> Dict[str, str]:
        return {
            "course_fullname": meeting.course.fullname,
            "course_shortname": meeting.course.shortname,
            "name": meeting.name,
            "url": f"{SITE_URL}/meeting/view?id={meeting.id}",
            "date": meeting.opening_time.strftime(DATE_FORMAT),
        }

    def get_subject(self, meeting: Meeting) -> str:
        return replace_vars_in_text(self.get_string_vars(meeting), REMINDER_SUBJECT_TEMPLATE)

    def get_html_message(self, meeting: Meeting) -> str:
        return replace_vars_in_text(self.get_string_vars(meeting), REMINDER_EMAIL_TEMPLATE)

    # ---------------------------------------------------------
    #                 SCAN
    # ---------------------------------------------------------
    def execute(self) -> int:
        """Queue every due reminder. Returns how many reminders fired."""
        if not self.is_enabled():
            logging.info("⏸️ Meeting reminders are disabled, skipping scan")
            return 0

        fired = 0
        settings = (
            self.db.query(MeetingNotification)
            .filter(MeetingNotification.reminder_enabled.is_(True))
            .order_by(MeetingNotification.meeting_id)
            .all()
        )
        for notification in settings:
            meeting = get_meeting(self.db, notification.meeting_id)
            if meeting.opening_time is None:
                continue

            subject = self.get_subject(meeting)
            html_message = self.get_html_message(meeting)
            reminders = (
                self.db.query(MeetingReminder)
                .filter(MeetingReminder.meeting_id == meeting.id)
                .order_by(MeetingReminder.id)
                .all()
            )
            for reminder in reminders:
                now = self.clock()
                if not is_reminder_due(reminder, meeting.opening_time, now):
                    continue
                if not self._claim(reminder, now):
                    logging.info(f"Reminder {reminder.id} was already sent by another scan")
                    continue
                user_jobs = self._queue_user_reminders(meeting, reminder, subject, html_message)
                guest_jobs = 0
                if notification.reminder_to_guests_enabled:
                    guest_jobs = self._queue_guest_reminders(meeting, reminder, subject, html_message)
                # last_sent and the queued jobs are committed together
                self.db.commit()
                fired += 1
                logging.info(
                    f"⏰ Reminder {reminder.id} for meeting {meeting.id} fired: "
                    f"{user_jobs} user job(s), {guest_jobs} guest job(s) queued"
                )
        return fired

    def _claim(self, reminder: MeetingReminder, now: datetime.datetime) -> bool:
        """Set last_sent only if it is still unset."""
        result = self.db.execute(
            update(MeetingReminder)
            .where(MeetingReminder.id == reminder.id, MeetingReminder.last_sent.is_(None))
            .values(last_sent=now)
            .execution_options(synchronize_session="fetch")
        )
        return result.rowcount == 1

    def _queue_user_reminders(self, meeting: Meeting, reminder: MeetingReminder, subject: str, html_message: str) -> int:
        users = self.enrolments.get_enrolled_users(meeting.course_id, JOIN_CAPABILITY)
        user_ids = [user.id for user in users if self.subscriptions.is_user_subscribed(user.id, meeting)]
        jobs = 0
        for batch in chunked(user_ids, MAX_EMAIL_PER_TASK):
            self.enqueue(SEND_EMAIL_REMINDERS_MESSAGE, UserReminderData(
                user_ids=batch,
                instance_id=meeting.id,
                reminder_id=reminder.id,
                subject=subject,
                html_message=html_message,
            ))
            jobs += 1
        return jobs

    def _queue_guest_reminders(self, meeting: Meeting, reminder: MeetingReminder, subject: str, html_message: str) -> int:
        guests = (
            self.db.query(GuestEmail)
            .filter(GuestEmail.meeting_id == meeting.id, GuestEmail.is_enabled.is_(True))
            .all()
        )
        emails = sorted(
            guest.email for guest in guests
            if self.subscriptions.is_user_email_subscribed(guest.email, meeting)
        )
        jobs = 0
        for batch in chunked(emails, MAX_EMAIL_PER_TASK):
            self.enqueue(SEND_EMAIL_REMINDERS, GuestReminderData(
                emails=batch,
                instance_id=meeting.id,
                reminder_id=reminder.id,
                subject=subject,
                html_message=html_message,
            ))
            jobs += 1
        return jobs


# ---------------------------------------------------------
#                 APSCHEDULER JOBS
# ---------------------------------------------------------
def run_check_emails_reminder():
    """
    Called by APScheduler in background to scan reminders.
    """
    db = SessionLocal()
    try:
        CheckEmailsReminder(
            db,
            enrolments=EnrolmentService(db),
            subscriptions=SubscriptionService(db),
        ).execute()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def run_pending_tasks(mailer: Mailer):
    run_adhoc_tasks(SessionLocal, build_task_handlers(mailer))


def start_scheduler(app):
    """
    Starts background APScheduler when app starts.
    """
    mailer = Mailer()
    app.state.mailer = mailer
    scheduler.add_job(
        run_check_emails_reminder,
        "interval",
        minutes=REMINDER_CHECK_MINUTES,
        id="check_emails_reminder",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.add_job(
        run_pending_tasks,
        "interval",
        seconds=ADHOC_TASK_SECONDS,
        args=[mailer],
        id="run_adhoc_tasks",
        replace_existing=True,
        max_instances=1,
    )
    scheduler.start()
    logging.info("⏰ Meeting reminder scheduler started...")
