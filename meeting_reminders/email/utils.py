from dataclasses import dataclass
from typing import Dict

from fastapi_mail import FastMail, MessageSchema, ConnectionConfig, MessageType
from fastapi_mail.schemas import MultipartSubtypeEnum

from meeting_reminders.core.config import MAIL_CONFIG, NOREPLY_ADDRESS, NOREPLY_NAME


@dataclass(frozen=True)
class Sender:
    email: str
    name: str = ""


def get_noreply_sender() -> Sender:
    return Sender(email=NOREPLY_ADDRESS, name=NOREPLY_NAME)


class Mailer:
    """
    Sends single messages through fastapi-mail.
    One FastMail connection is kept per sender identity.
    """

    def __init__(self, mail_config: dict = None):
        self.mail_config = dict(mail_config if mail_config is not None else MAIL_CONFIG)
        self._clients: Dict[Sender, FastMail] = {}

    def _client(self, sender: Sender) -> FastMail:
        if sender not in self._clients:
            conf = ConnectionConfig(
                MAIL_FROM=sender.email,
                MAIL_FROM_NAME=sender.name,
                **self.mail_config,
            )
            self._clients[sender] = FastMail(conf)
        return self._clients[sender]

    async def send(self, sender: Sender, recipient: str, subject: str, text: str, html: str):
        # ------------------------------
        # HTML body with a plain-text alternative
        # ------------------------------
        message = MessageSchema(
            subject=subject,
            recipients=[recipient],
            body=html,
            alternative_body=text,
            subtype=MessageType.html,
            multipart_subtype=MultipartSubtypeEnum.alternative,
        )
        await self._client(sender).send_message(message)
