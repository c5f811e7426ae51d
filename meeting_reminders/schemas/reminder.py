from pydantic import BaseModel
from typing import List


class ReminderMessageData(BaseModel):
    """Fields shared by both delivery jobs, precomputed by the scanner."""
    instance_id: int
    reminder_id: int
    subject: str
    html_message: str


class GuestReminderData(ReminderMessageData):
    emails: List[str]


class UserReminderData(ReminderMessageData):
    user_ids: List[int]
