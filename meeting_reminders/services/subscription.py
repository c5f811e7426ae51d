from typing import Optional, Tuple
from urllib.parse import urlencode

from jose import jwt, JWTError
from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from meeting_reminders.core import config
from meeting_reminders.core.config import SITE_URL
from meeting_reminders.models.meeting import Meeting
from meeting_reminders.models.subscription import Unsubscription
from meeting_reminders.models.user import User

# -----------------------------
# Unsubscribe tokens
# -----------------------------
ALGORITHM = "HS256"
UNSUBSCRIBE_PURPOSE = "unsubscribe"


class InvalidUnsubscribeToken(ValueError):
    pass


def _secret_key() -> str:
    if not config.SECRET_KEY:
        raise RuntimeError("SECRET_KEY is not configured")
    return config.SECRET_KEY


def create_unsubscribe_token(meeting_id: int, email: str) -> str:
    claims = {"sub": email, "mid": meeting_id, "purpose": UNSUBSCRIBE_PURPOSE}
    return jwt.encode(claims, _secret_key(), algorithm=ALGORITHM)


def decode_unsubscribe_token(token: str) -> Tuple[int, str]:
    """Return (meeting_id, email) carried by an unsubscribe token."""
    try:
        payload = jwt.decode(token, _secret_key(), algorithms=[ALGORITHM])
    except JWTError as e:
        raise InvalidUnsubscribeToken(str(e)) from e
    email = payload.get("sub")
    meeting_id = payload.get("mid")
    if payload.get("purpose") != UNSUBSCRIBE_PURPOSE or not email or not isinstance(meeting_id, int):
        raise InvalidUnsubscribeToken("Token is not an unsubscribe token")
    return meeting_id, email


def get_unsubscribe_url(meeting_id: int, email: str) -> str:
    query = urlencode({"token": create_unsubscribe_token(meeting_id, email)})
    return f"{SITE_URL}/unsubscribe?{query}"


# -----------------------------
# Subscription checks
# -----------------------------
class SubscriptionService:
    def __init__(self, db: Session):
        self.db = db

    def _unsubscribed(self, meeting_id: int, *conditions) -> bool:
        query = self.db.query(Unsubscription.id).filter(
            Unsubscription.meeting_id == meeting_id,
            or_(*conditions),
        )
        return self.db.query(query.exists()).scalar()

    def is_user_subscribed(self, user_id: int, meeting: Meeting) -> bool:
        conditions = [Unsubscription.user_id == user_id]
        user = self.db.get(User, user_id)
        if user is not None:
            conditions.append(func.lower(Unsubscription.email) == user.email.lower())
        return not self._unsubscribed(meeting.id, *conditions)

    def is_user_email_subscribed(self, email: str, meeting: Meeting) -> bool:
        return not self._unsubscribed(meeting.id, func.lower(Unsubscription.email) == email.lower())

    def unsubscribe(self, meeting_id: int, email: str) -> Optional[Unsubscription]:
        """
        Record that email no longer wants reminders for the meeting.
        Returns None when it was already unsubscribed.
        """
        existing = self.db.query(Unsubscription).filter(
            Unsubscription.meeting_id == meeting_id,
            func.lower(Unsubscription.email) == email.lower(),
        ).first()
        if existing:
            return None

        user = self.db.query(User).filter(func.lower(User.email) == email.lower()).first()
        record = Unsubscription(meeting_id=meeting_id, email=email, user_id=user.id if user else None)
        self.db.add(record)
        self.db.commit()
        self.db.refresh(record)
        return record
