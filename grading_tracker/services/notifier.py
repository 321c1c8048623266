from __future__ import annotations

import html
import logging
import smtplib
import ssl
from collections.abc import Callable, Sequence
from email.message import EmailMessage

from ..errors import NotificationError
from ..models.config_models import MailConfig
from ..models.report import GradingDecision
from ..models.schedule_group import InstructorContact

"""Instructor notification over SMTP.

The recipient is chosen by an ordered list of address rules; the first rule
that yields a non-empty address wins. RECIPIENT_RULES starts with the test
override (``TEST_MAIL_RECIPIENT``) so a staging run never mails instructors.
CONTACT_RULES omits it and is used for the address stored in the audit log.
"""

__all__ = [
    "AddressRule",
    "RECIPIENT_RULES",
    "CONTACT_RULES",
    "resolve_address",
    "build_message",
    "InstructorNotifier",
]

logger = logging.getLogger(__name__)

SSL_PORT = 465
DATE_FORMAT = "%d/%m/%Y %H:%M"
NO_DATE_TEXT = "No registrada"
FOOTER = (
    "Este es un mensaje automático generado por el proceso diario de "
    "seguimiento de horarios."
)

AddressRule = tuple[str, Callable[[InstructorContact, MailConfig], str | None]]

RECIPIENT_RULES: tuple[AddressRule, ...] = (
    ("test_override", lambda contact, mail: mail.test_recipient),
    ("institutional", lambda contact, mail: contact.email),
    ("personal", lambda contact, mail: contact.email_personal),
)
CONTACT_RULES: tuple[AddressRule, ...] = RECIPIENT_RULES[1:]


def resolve_address(
    contact: InstructorContact,
    mail: MailConfig,
    rules: Sequence[AddressRule] = RECIPIENT_RULES,
) -> str | None:
    for name, rule in rules:
        address = rule(contact, mail)
        if address and address.strip():
            logger.debug("address resolved by rule %s", name)
            return address.strip()
    return None


def build_message(
    *,
    sender: str,
    recipient: str,
    contact: InstructorContact,
    fiche_number: str,
    decision: GradingDecision,
) -> EmailMessage:
    """Plain text + HTML message describing the ficha's grading status."""
    name = contact.name or ""
    grade_date = (
        decision.grade_date.strftime(DATE_FORMAT) if decision.grade_date else NO_DATE_TEXT
    )
    status = decision.status_label

    msg = EmailMessage()
    msg["Subject"] = f"Ficha {fiche_number} - Estado de calificación"
    msg["From"] = sender
    msg["To"] = recipient
    msg.set_content(
        f"Hola {name},\n\n"
        f"El sistema revisó el reporte de la ficha {fiche_number} y determinó "
        f'el estado "{status}".\n'
        f"Fecha de calificación: {grade_date}.\n\n"
        f"{FOOTER}"
    )
    msg.add_alternative(
        f"<p>Hola {html.escape(name)},</p>"
        f"<p>El sistema revisó el reporte de la ficha <strong>{html.escape(fiche_number)}</strong> "
        f"y determinó el estado <strong>{html.escape(status)}</strong>.</p>"
        f"<p>Fecha de calificación: <strong>{grade_date}</strong></p>"
        f"<p>{FOOTER}</p>",
        subtype="html",
    )
    return msg


class InstructorNotifier:
    """Sends the "grading still pending" mail to a ficha's instructor."""

    def __init__(self, config: MailConfig) -> None:
        self.config = config

    def notify(
        self,
        contact: InstructorContact,
        fiche_number: str,
        decision: GradingDecision,
    ) -> bool:
        """Send the notification.

        Returns:
            True when a message was handed to the SMTP server, False when the
            send was skipped (mail disabled, no credentials, no recipient).

        Raises:
            NotificationError: the SMTP transport failed.
        """
        cfg = self.config
        if not cfg.enabled:
            logger.info("notification skipped for ficha %s; mail disabled", fiche_number)
            return False
        if not cfg.user or not cfg.password:
            logger.warning("EMAIL_USER or EMAIL_PASS not configured; no mail sent")
            return False
        recipient = resolve_address(contact, cfg)
        if recipient is None:
            logger.warning("no mail address for the instructor of ficha %s", fiche_number)
            return False

        msg = build_message(
            sender=cfg.sender or cfg.user,
            recipient=recipient,
            contact=contact,
            fiche_number=fiche_number,
            decision=decision,
        )
        try:
            self._send(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise NotificationError(
                f"could not send notification for ficha {fiche_number}: {e}"
            ) from e
        logger.info("notification sent for ficha %s to %s", fiche_number, recipient)
        return True

    def _send(self, msg: EmailMessage) -> None:
        cfg = self.config
        context = ssl.create_default_context()
        if cfg.port == SSL_PORT:
            with smtplib.SMTP_SSL(cfg.host, cfg.port, context=context) as server:
                server.login(cfg.user, cfg.password)
                server.send_message(msg)
        else:
            with smtplib.SMTP(cfg.host, cfg.port) as server:
                server.starttls(context=context)
                server.login(cfg.user, cfg.password)
                server.send_message(msg)
