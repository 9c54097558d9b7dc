"""
Delivery sinks for match notifications.

A sink exposes send(message). Failures raise DeliveryError so the task queue
can retry and the sweep can pick the match up later.
"""
import smtplib
import ssl
from email.mime.text import MIMEText
from typing import List

from app.models.schemas import MatchRecord, NotificationMessage
from app.models.settings import NotificationSettings, SmtpSettings
from app.utils.exceptions import DeliveryError
from app.utils.logging_config import get_logger

logger = get_logger(__name__)


def _match_lines(match: MatchRecord) -> List[str]:
    lines = [
        f"{match.title} at {match.organization}",
        f"Match score: {match.match_score}%",
    ]
    if match.location:
        lines.append(f"Location: {match.location}")
    if match.compensation:
        lines.append(f"Compensation: {match.compensation}")
    for reason in match.match_reasons:
        lines.append(f"  - {reason}")
    if match.url:
        lines.append(f"Apply: {match.url}")
    return lines


def render_match_message(recipient: str, match: MatchRecord) -> NotificationMessage:
    body = "\n".join(["We found a new job that matches your profile:", ""] + _match_lines(match))
    return NotificationMessage(
        to=recipient,
        subject=f"New job match: {match.title} at {match.organization}",
        body=body,
    )


def render_batch_message(recipient: str, matches: List[MatchRecord], shown: int = 5) -> NotificationMessage:
    """One message covering the top `shown` matches, with a count of the rest."""
    lines = [f"You have {len(matches)} new job matches:", ""]
    for m in matches[:shown]:
        lines += _match_lines(m) + [""]
    remaining = len(matches) - shown
    if remaining > 0:
        lines.append(f"And {remaining} more…")
    return NotificationMessage(
        to=recipient,
        subject=f"{len(matches)} new job matches for you",
        body="\n".join(lines).rstrip(),
    )


class LoggingDeliverySink:
    """Writes messages to the log; the default sink outside production."""

    name = "log"

    def send(self, message: NotificationMessage) -> None:
        logger.info(
            f"Notification to {message.to}: {message.subject}",
            extra={"recipient": message.to, "body_length": len(message.body)}
        )


class SmtpDeliverySink:

    name = "smtp"

    def __init__(self, settings: SmtpSettings):
        self.settings = settings

    def send(self, message: NotificationMessage) -> None:
        s = self.settings
        if not s.username or not s.password:
            raise DeliveryError("SMTP credentials not configured", sink=self.name, recipient=message.to)

        msg = MIMEText(message.body, "plain", "utf-8")
        msg["Subject"] = message.subject
        msg["From"] = s.from_email or s.username
        msg["To"] = message.to

        context = ssl.create_default_context()
        try:
            # 465 is implicit TLS, anything else negotiates STARTTLS
            if s.port == 465:
                with smtplib.SMTP_SSL(s.server, s.port, context=context) as server:
                    server.login(s.username, s.password)
                    server.send_message(msg)
            else:
                with smtplib.SMTP(s.server, s.port) as server:
                    server.starttls(context=context)
                    server.login(s.username, s.password)
                    server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise DeliveryError(f"SMTP send failed: {e}", sink=self.name, recipient=message.to, cause=e)

        logger.info(f"[SMTP] Email sent to {message.to}")


def build_sink(notification_settings: NotificationSettings, smtp_settings: SmtpSettings):
    if notification_settings.sink == "smtp":
        return SmtpDeliverySink(smtp_settings)
    return LoggingDeliverySink()
