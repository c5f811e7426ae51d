"""Tests for the delivery workers that send queued reminder batches."""

from urllib.parse import parse_qs, urlparse

import pytest
from sqlalchemy.exc import NoResultFound

from meeting_reminders.core.config import NOREPLY_ADDRESS, SITE_URL
from meeting_reminders.scheduler.delivery import (
    SEND_EMAIL_REMINDERS,
    SEND_EMAIL_REMINDERS_MESSAGE,
    SendEmailReminders,
    SendEmailRemindersMessage,
    build_task_handlers,
    compose_message,
)
from meeting_reminders.schemas.reminder import GuestReminderData, UserReminderData
from meeting_reminders.services.subscription import decode_unsubscribe_token

HTML = "<p>Seminar starts soon.</p><p><a href=\"https://lms.example.com/m/1\">Join</a></p>"


def _token_from(html):
    start = html.index(f"{SITE_URL}/unsubscribe?")
    end = html.index('"', start)
    url = html[start:end].replace("&amp;", "&")
    return parse_qs(urlparse(url).query)["token"][0]


def _guest_data(meeting, emails):
    return GuestReminderData(
        emails=emails,
        instance_id=meeting.id,
        reminder_id=7,
        subject="Reminder: Weekly seminar",
        html_message=HTML,
    )


def test_compose_message_appends_unsubscribe_notice():
    html = compose_message(HTML, 3, "ana@example.org")

    assert html.startswith(HTML + "<br><br>")
    assert decode_unsubscribe_token(_token_from(html)) == (3, "ana@example.org")


def test_guest_batch_sends_one_message_per_address(db, factory, mailer):
    meeting = factory.meeting()
    emails = ["ana@example.org", "ben@example.org", "cy@example.org"]

    sent = SendEmailReminders(db, mailer).execute(_guest_data(meeting, emails))

    assert sent == 3
    assert [m["recipient"] for m in mailer.sent] == emails
    for message, email in zip(mailer.sent, emails):
        assert message["subject"] == "Reminder: Weekly seminar"
        assert message["sender"].email == NOREPLY_ADDRESS
        assert message["html"].startswith(HTML)
        assert decode_unsubscribe_token(_token_from(message["html"])) == (meeting.id, email)
        assert "<p>" not in message["text"]
        assert "Seminar starts soon." in message["text"]
    links = {_token_from(m["html"]) for m in mailer.sent}
    assert len(links) == 3


def test_user_batch_resolves_addresses_and_skips_missing_users(db, factory, mailer):
    meeting = factory.meeting()
    users = factory.enrol(meeting.course, count=2)
    data = UserReminderData(
        user_ids=[users[0].id, 424242, users[1].id],
        instance_id=meeting.id,
        reminder_id=1,
        subject="Reminder",
        html_message=HTML,
    )

    sent = SendEmailRemindersMessage(db, mailer).execute(data)

    assert sent == 2
    assert [m["recipient"] for m in mailer.sent] == [users[0].email, users[1].email]
    assert decode_unsubscribe_token(_token_from(mailer.sent[1]["html"])) == (meeting.id, users[1].email)


def test_missing_meeting_fails_the_job(db, mailer):
    data = GuestReminderData(
        emails=["ana@example.org"], instance_id=404, reminder_id=1, subject="s", html_message=HTML,
    )

    with pytest.raises(NoResultFound):
        SendEmailReminders(db, mailer).execute(data)
    assert mailer.sent == []


def test_mail_failure_propagates(db, factory):
    class BrokenMailer:
        async def send(self, *args):
            raise ConnectionError("SMTP unavailable")

    meeting = factory.meeting()

    with pytest.raises(ConnectionError):
        SendEmailReminders(db, BrokenMailer()).execute(_guest_data(meeting, ["ana@example.org"]))


def test_task_handlers_cover_both_job_types(db, factory, mailer):
    meeting = factory.meeting()
    handlers = build_task_handlers(mailer)

    assert set(handlers) == {SEND_EMAIL_REMINDERS, SEND_EMAIL_REMINDERS_MESSAGE}
    handlers[SEND_EMAIL_REMINDERS](db, _guest_data(meeting, ["ana@example.org"]).model_dump())
    assert [m["recipient"] for m in mailer.sent] == ["ana@example.org"]
