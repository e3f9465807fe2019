# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
import smtplib
from dataclasses import dataclass
from email.message import EmailMessage
from typing import Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_SMTP_HOST = "localhost"


class MailDeliveryError(RuntimeError):
    """Raised when an outbound message could not be handed to the relay."""


class Mailer(Protocol):
    def send(self, recipient: str, subject: str, html: str) -> None:
        ...


def _env_flag(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in {"1", "true", "yes", "y"}


@dataclass
class SmtpMailer:
    host: str
    port: int = 25
    sender: str = "weather@localhost"
    username: str = ""
    password: str = ""
    starttls: bool = False
    timeout: float = 10.0

    def send(self, recipient: str, subject: str, html: str) -> None:
        msg = EmailMessage()
        msg["From"] = self.sender
        msg["To"] = recipient
        msg["Subject"] = subject
        msg.set_content("This message requires an HTML capable mail client.")
        msg.add_alternative(html, subtype="html")

        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as server:
                if self.starttls:
                    server.starttls()
                if self.username:
                    server.login(self.username, self.password)
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            raise MailDeliveryError(f"SMTP delivery to {self.host}:{self.port} failed: {e}") from e


@dataclass
class LogMailer:
    """Development mailer: writes the message to the log instead of sending it."""

    sender: str = "weather@localhost"

    def send(self, recipient: str, subject: str, html: str) -> None:
        logger.warning("Mail not sent (WXS_MAIL_BACKEND=log). From=%s To=%s Subject=%s\n%s", self.sender, recipient, subject, html)


def build_mailer(sender: str, host: Optional[str] = None) -> Mailer:
    """SMTP through the local MTA unless WXS_MAIL_BACKEND=log is set explicitly."""
    backend = os.getenv("WXS_MAIL_BACKEND", "smtp").strip().lower()
    if backend == "log":
        return LogMailer(sender=sender)
    if backend != "smtp":
        raise RuntimeError(f"Unknown WXS_MAIL_BACKEND: {backend!r} (expected smtp or log)")
    if host is None:
        host = os.getenv("WXS_SMTP_HOST", "")
    return SmtpMailer(
        host=(host or "").strip() or DEFAULT_SMTP_HOST,
        port=int(os.getenv("WXS_SMTP_PORT", "25")),
        sender=sender,
        username=os.getenv("WXS_SMTP_USER", ""),
        password=os.getenv("WXS_SMTP_PASSWORD", ""),
        starttls=_env_flag("WXS_SMTP_STARTTLS"),
    )
