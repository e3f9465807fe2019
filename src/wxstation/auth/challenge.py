# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import secrets

from email_validator import EmailNotValidError, validate_email

CHALLENGE_BYTES = 32


def generate_challenge() -> str:
    """Return 32 random bytes, URL-safe base64 encoded."""
    return secrets.token_urlsafe(CHALLENGE_BYTES)


def is_valid_email(value: str) -> bool:
    """Syntax check only; no DNS / deliverability lookup.

    Dotless LAN domains (op@weather) are accepted. Special-use names such as
    localhost, .local, .test or .invalid stay rejected by email-validator.
    """
    if not value or not isinstance(value, str):
        return False
    try:
        validate_email(value, check_deliverability=False, globally_deliverable=False)
    except EmailNotValidError:
        return False
    return True


def mask_email(email: str) -> str:
    """Shorten an address for log lines: 'alice@x.com' -> 'ali***@x.com'."""
    local, _, domain = (email or "").partition("@")
    return f"{local[:3]}***@{domain}"
