# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
from html import escape
from urllib.parse import urlencode, urlsplit

from wxstation.infra.mailer import Mailer

DEFAULT_PUBLIC_URL = "http://localhost:8000"

LOGIN_SUBJECT = "Weather Station Login Attempt"
REGISTER_SUBJECT = "Weather Station Registration"


def public_url() -> str:
    """Base URL used in emailed links (no trailing slash)."""
    return (os.getenv("WXS_PUBLIC_URL") or DEFAULT_PUBLIC_URL).rstrip("/")


def default_sender(base_url: str) -> str:
    configured = os.getenv("WXS_MAIL_FROM", "").strip()
    if configured:
        return configured
    host = urlsplit(base_url).hostname or "localhost"
    return f"weather@{host}"


def verification_link(base_url: str, path: str, token: str) -> str:
    return f"{base_url.rstrip('/')}{path}?{urlencode({'c': token})}"


def send_login_challenge(mailer: Mailer, base_url: str, recipient: str, token: str) -> None:
    link = escape(verification_link(base_url, "/verify_login", token))
    html = (
        "Hello,<br /><br />"
        "You are receiving this email because a login has been requested for the Weather Station.<br />"
        f'Press the following link to authorize the request. <a href="{link}">Authorize Request.</a>'
        "<br /><br />Weather Station"
    )
    mailer.send(recipient, LOGIN_SUBJECT, html)


def send_registration(mailer: Mailer, base_url: str, recipient: str, token: str) -> None:
    link = escape(verification_link(base_url, "/verify_register", token))
    html = (
        "Hello,<br /><br />"
        "Your Weather Station admin has generated a registration request for you.<br />"
        f'Press the following link to register for the web interface. <a href="{link}">Register.</a>'
        "<br /><br />Weather Station"
    )
    mailer.send(recipient, REGISTER_SUBJECT, html)
