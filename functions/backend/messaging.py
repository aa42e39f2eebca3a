"""
Out-of-band delivery: FCM push notifications and SMTP email.
"""

from __future__ import annotations

import logging
import smtplib
from dataclasses import dataclass, field
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Optional, Protocol

from firebase_admin import messaging

logger = logging.getLogger(__name__)


class Messenger(Protocol):
    """Push and email delivery used by the notification helpers."""

    def send_push(
        self, token: str, title: str, body: str, data: Optional[dict] = None
    ) -> str:
        ...

    def send_email(self, to_address: str, subject: str, html: str) -> None:
        ...


@dataclass
class InMemoryMessenger:
    """Test double that records deliveries instead of sending them."""

    pushes: list = field(default_factory=list)
    emails: list = field(default_factory=list)

    def send_push(
        self, token: str, title: str, body: str, data: Optional[dict] = None
    ) -> str:
        self.pushes.append(
            {"token": token, "title": title, "body": body, "data": data or {}}
        )
        return f"projects/test/messages/{len(self.pushes)}"

    def send_email(self, to_address: str, subject: str, html: str) -> None:
        self.emails.append({"to": to_address, "subject": subject, "html": html})


@dataclass
class FirebaseMessenger:
    """Sends push through Firebase Cloud Messaging and email through SMTP."""

    smtp_server: str
    smtp_port: int
    sender_email: Optional[str] = None
    sender_password: Optional[str] = None

    def send_push(
        self, token: str, title: str, body: str, data: Optional[dict] = None
    ) -> str:
        message = messaging.Message(
            token=token,
            notification=messaging.Notification(title=title, body=body),
            # FCM data payload values must be strings.
            data={k: str(v) for k, v in (data or {}).items()},
        )
        return messaging.send(message)

    def send_email(self, to_address: str, subject: str, html: str) -> None:
        if not self.sender_email or not self.sender_password:
            logger.warning(
                "Email credentials not configured; skipping email to %s", to_address
            )
            return

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = self.sender_email
        msg["To"] = to_address
        msg.attach(MIMEText(html, "html", "utf-8"))

        with smtplib.SMTP(self.smtp_server, self.smtp_port) as server:
            server.starttls()
            server.login(self.sender_email, self.sender_password)
            server.send_message(msg)
        logger.info("Email sent to %s", to_address)
