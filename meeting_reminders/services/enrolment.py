from typing import List
from sqlalchemy.orm import Session

from meeting_reminders.models.course import Enrolment
from meeting_reminders.models.user import User

JOIN_CAPABILITY = "meeting:join"

# Capabilities granted by each course role
ROLE_CAPABILITIES = {
    "student": {JOIN_CAPABILITY},
    "teacher": {JOIN_CAPABILITY, "meeting:moderate"},
    "editingteacher": {JOIN_CAPABILITY, "meeting:moderate", "meeting:addinstance"},
    "guest": set(),
}


def roles_with_capability(capability: str) -> List[str]:
    return sorted(role for role, caps in ROLE_CAPABILITIES.items() if capability in caps)


class EnrolmentService:
    def __init__(self, db: Session):
        self.db = db

    def get_enrolled_users(self, course_id: int, capability: str = JOIN_CAPABILITY) -> List[User]:
        """Active enrolled users of a course whose role grants the capability."""
        roles = roles_with_capability(capability)
        if not roles:
            return []
        return (
            self.db.query(User)
            .join(Enrolment, Enrolment.user_id == User.id)
            .filter(
                Enrolment.course_id == course_id,
                Enrolment.is_active.is_(True),
                Enrolment.role.in_(roles),
            )
            .distinct()
            .order_by(User.id)
            .all()
        )
