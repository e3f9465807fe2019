# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Passwordless login and admin-driven registration.

Login:        begin_login -> (email with link) -> verify_login
Registration: begin_registration (admin) -> (email with link) -> verify_registration
"""

from __future__ import annotations

import hmac
import logging

from wxstation.auth.challenge import generate_challenge, is_valid_email, mask_email
from wxstation.core.context import LoginChallenge, RequestContext
from wxstation.core.results import FlowResult, Ok, Redirect, Rejected
from wxstation.infra.mailer import MailDeliveryError
from wxstation.infra.user_repo import (
    register_email,
    register_lookup,
    register_remove,
    user_add,
    user_exists,
    user_is_admin,
)
from wxstation.services.mail_service import send_login_challenge, send_registration
from wxstation.services.page_service import render_auth_page, render_login

logger = logging.getLogger(__name__)

CHECK_MAIL = "Check your mail for login code"
INVALID_EMAIL = "Invalid email"
ALREADY_REGISTERED = "Email already registered"
MAIL_FAILED = "Could not send authentication mail"


def _invalid_token() -> Rejected:
    return Rejected(401, render_auth_page("invalid_token"), html=True)


def login_page(ctx: RequestContext) -> FlowResult:
    if ctx.session.is_authenticated():
        return Redirect("/")
    return Ok(render_login(), html=True)


def begin_login(ctx: RequestContext, email: str) -> FlowResult:
    if ctx.session.is_authenticated():
        return Redirect("/")

    if not is_valid_email(email):
        return Rejected(422, INVALID_EMAIL)

    # Same answer for unknown addresses so the form does not reveal accounts.
    if not user_exists(ctx.store, email):
        logger.info("Login requested for unknown address %s", mask_email(email))
        return Ok(CHECK_MAIL)

    challenge = generate_challenge()
    ctx.session.set_pending_login(LoginChallenge(email=email, challenge=challenge))

    try:
        send_login_challenge(ctx.mailer, ctx.public_url, email, challenge)
    except MailDeliveryError:
        logger.exception("Login mail to %s failed", mask_email(email))
        return Rejected(500, MAIL_FAILED)

    logger.info("Login challenge sent to %s", mask_email(email))
    return Ok(CHECK_MAIL)


def verify_login(ctx: RequestContext, token: str) -> FlowResult:
    pending = ctx.session.pending_login()
    if pending is None:
        return Redirect("/login")

    # TODO: invalidate the challenge after repeated mismatches once product signs off;
    # until then retries are bounded only by the session TTL.
    if not hmac.compare_digest((token or "").encode("utf-8"), pending.challenge.encode("utf-8")):
        logger.info("Login challenge mismatch for %s", mask_email(pending.email))
        return _invalid_token()

    ctx.session.login_as(pending.email)
    logger.info("User logged in: %s", mask_email(pending.email))
    return Ok(render_auth_page("verified"), html=True)


def begin_registration(ctx: RequestContext, email: str) -> FlowResult:
    caller = ctx.session.identity()
    if not caller or not user_is_admin(ctx.store, caller):
        return Rejected(401)

    if not is_valid_email(email):
        return Rejected(422, INVALID_EMAIL)

    if user_exists(ctx.store, email):
        return Rejected(422, ALREADY_REGISTERED)

    challenge = generate_challenge()
    register_email(ctx.store, email, challenge)

    try:
        send_registration(ctx.mailer, ctx.public_url, email, challenge)
    except MailDeliveryError:
        logger.exception("Registration mail to %s failed", mask_email(email))
        return Rejected(500, MAIL_FAILED)

    logger.info("Registration requested by %s for %s", mask_email(caller), mask_email(email))
    return Ok(CHECK_MAIL)


def verify_registration(ctx: RequestContext, token: str) -> FlowResult:
    email = register_lookup(ctx.store, token)
    if email is None:
        return _invalid_token()

    # Claim the token first: of concurrent verifications only one deletes the key.
    if not register_remove(ctx.store, token):
        return _invalid_token()

    # A second pending token for the same address must not reset the record.
    if not user_exists(ctx.store, email):
        user_add(ctx.store, email)
        logger.info("User registered: %s", mask_email(email))
    return Ok(render_auth_page("registered"), html=True)


def logout(ctx: RequestContext) -> FlowResult:
    if ctx.session.is_authenticated():
        ctx.session.purge()
    return Redirect("/login")


def poll_login(ctx: RequestContext) -> FlowResult:
    if ctx.session.is_authenticated():
        return Ok("")
    return Rejected(406, "")
