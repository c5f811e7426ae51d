import logging

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from meeting_reminders.core.db import get_db
from meeting_reminders.models.meeting import Meeting
from meeting_reminders.services.subscription import (
    InvalidUnsubscribeToken,
    SubscriptionService,
    decode_unsubscribe_token,
)

router = APIRouter()


@router.get("/unsubscribe")
def unsubscribe(token: str = Query(...), db: Session = Depends(get_db)):
    try:
        meeting_id, email = decode_unsubscribe_token(token)
    except InvalidUnsubscribeToken:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid unsubscribe link")

    meeting = db.get(Meeting, meeting_id)
    if meeting is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Meeting not found")

    record = SubscriptionService(db).unsubscribe(meeting.id, email)
    if record is not None:
        logging.info(f"🔕 {email} unsubscribed from meeting {meeting.id} reminders")

    return {
        "msg": f"You will no longer receive reminders for {meeting.name}.",
        "meeting_id": meeting.id,
        "email": email,
    }
