"""Outgoing email contract and templates.

Delivery itself is an external collaborator. The application only depends
on :class:`EmailSender`; :class:`LoggingEmailSender` is the default and
:class:`OutboxEmailSender` keeps messages in memory.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str
    template: str
    link: str | None = None


class EmailSender(Protocol):
    def send(self, message: EmailMessage) -> None:
        ...


class LoggingEmailSender:
    """Writes outgoing mail to the log instead of delivering it."""

    def send(self, message: EmailMessage) -> None:
        logger.info(
            "Email [%s] to %s: %s (%s)",
            message.template,
            message.to,
            message.subject,
            message.link or "-",
        )


class OutboxEmailSender:
    """Collects messages in a list."""

    def __init__(self):
        self.outbox: list[EmailMessage] = []

    def send(self, message: EmailMessage) -> None:
        self.outbox.append(message)


_TEMPLATES = {
    "welcome": (
        "Invitación a Mundo Bebé",
        "Hola,\n\nHas sido invitado a administrar la tienda Mundo Bebé. "
        "Completa tu registro en el siguiente enlace (válido por 7 días):\n\n{link}\n",
    ),
    "reset_password": (
        "Restablece tu contraseña",
        "Hola {name},\n\nRecibimos una solicitud para restablecer tu contraseña. "
        "Usa el siguiente enlace (válido por 1 hora):\n\n{link}\n\n"
        "Si no solicitaste este cambio, ignora este mensaje.\n",
    ),
}


def render_email(template: str, to: str, link: str, name: str = "") -> EmailMessage:
    """Render one of the known templates.

    Raises:
        KeyError: Unknown template name
    """
    subject, body = _TEMPLATES[template]
    return EmailMessage(
        to=to,
        subject=subject,
        body=body.format(link=link, name=name or to),
        template=template,
        link=link,
    )
