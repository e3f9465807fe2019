# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os

from fastapi import Request

from wxstation.auth.session import Session
from wxstation.core.context import RequestContext, SessionAccessor


def current_session(request: Request) -> Session:
    session = getattr(request.state, "session", None)
    if session is None:
        # Only reachable when the session middleware is not installed.
        session = Session()
        request.state.session = session
    return session


def request_context(request: Request) -> RequestContext:
    """FastAPI dependency: request-scoped handles for the flows."""
    app_state = request.app.state
    return RequestContext(
        session=SessionAccessor(current_session(request)),
        store=app_state.store,
        mailer=app_state.mailer,
        public_url=app_state.public_url,
        data_url=getattr(app_state, "data_url", ""),
    )


def cookie_settings() -> dict:
    secure = os.getenv("WXS_COOKIE_SECURE", "false").lower() in {"1", "true", "yes", "y"}
    return {"httponly": True, "samesite": "lax", "secure": secure}
