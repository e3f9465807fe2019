# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Form, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import FileResponse
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel

from wxstation.auth import flow
from wxstation.auth.session import COOKIE_NAME, SessionStore
from wxstation.core.context import RequestContext
from wxstation.core.results import to_response
from wxstation.infra.kv_store import KeyValueStore, build_store
from wxstation.infra.mailer import Mailer, build_mailer
from wxstation.permissions import cookie_settings, request_context
from wxstation.services import mail_service
from wxstation.services.page_service import dashboard_index
from wxstation.services.settings_service import settings_index, settings_save

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parent
FAVICON = BASE_DIR / "static" / "images" / "favicon.svg"

router = APIRouter()


class Identity(BaseModel):
    email: str = ""


async def _email_from_body(request: Request) -> str:
    """Read `email` from a JSON or form body; anything else yields ''."""
    content_type = request.headers.get("content-type", "")
    if content_type.startswith("application/json"):
        try:
            data = await request.json()
        except ValueError:
            return ""
        if not isinstance(data, dict):
            return ""
        return str(data.get("email") or "")
    if content_type.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        return str(form.get("email") or "")
    return ""


# ------------------ Routes ------------------


@router.get("/login")
def login_get(ctx: RequestContext = Depends(request_context)):
    return to_response(flow.login_page(ctx))


@router.post("/login")
def login_post(identity: Identity, ctx: RequestContext = Depends(request_context)):
    return to_response(flow.begin_login(ctx, identity.email))


@router.api_route("/poll_login", methods=["GET", "POST"])
def poll_login(ctx: RequestContext = Depends(request_context)):
    return to_response(flow.poll_login(ctx))


@router.api_route("/verify_login", methods=["GET", "POST"])
def verify_login(c: str = "", ctx: RequestContext = Depends(request_context)):
    return to_response(flow.verify_login(ctx, c))


@router.api_route("/logout", methods=["GET", "POST"])
def logout(ctx: RequestContext = Depends(request_context)):
    return to_response(flow.logout(ctx))


@router.api_route("/register", methods=["GET", "POST", "PUT"])
async def register(request: Request, ctx: RequestContext = Depends(request_context)):
    email = await _email_from_body(request)
    result = await run_in_threadpool(flow.begin_registration, ctx, email)
    return to_response(result)


@router.api_route("/verify_register", methods=["GET", "POST"])
def verify_register(c: str = "", ctx: RequestContext = Depends(request_context)):
    return to_response(flow.verify_registration(ctx, c))


@router.get("/settings")
def settings_get(ctx: RequestContext = Depends(request_context)):
    return to_response(settings_index(ctx))


@router.post("/settings")
def settings_post(
    temperature: str = Form(""),
    pressure: str = Form(""),
    theme: str = Form(""),
    timeframe: str = Form(""),
    ctx: RequestContext = Depends(request_context),
):
    form = {"temperature": temperature, "pressure": pressure, "theme": theme, "timeframe": timeframe}
    return to_response(settings_save(ctx, form))


@router.get("/favicon.ico", include_in_schema=False)
def favicon():
    return FileResponse(FAVICON, media_type="image/svg+xml")


@router.get("/")
def home(ctx: RequestContext = Depends(request_context)):
    return to_response(dashboard_index(ctx))


# ------------------ Application ------------------


def create_app(
    *,
    store: Optional[KeyValueStore] = None,
    mailer: Optional[Mailer] = None,
    public_url: Optional[str] = None,
    data_url: Optional[str] = None,
) -> FastAPI:
    """Build the application; collaborators default to the environment configuration."""
    base_url = (public_url or mail_service.public_url()).rstrip("/")

    app = FastAPI(title="Weather Station")
    app.state.store = store if store is not None else build_store()
    app.state.mailer = mailer if mailer is not None else build_mailer(mail_service.default_sender(base_url))
    app.state.public_url = base_url
    app.state.data_url = (data_url if data_url is not None else os.getenv("WXS_DATA_URL", "")).strip()
    if not app.state.data_url:
        logger.warning("WXS_DATA_URL is empty: the dashboard will show no measurements")
    app.state.sessions = SessionStore(app.state.store)

    @app.middleware("http")
    async def _session_middleware(request: Request, call_next):
        sessions: SessionStore = request.app.state.sessions
        session = await run_in_threadpool(sessions.load, request.cookies.get(COOKIE_NAME, ""))
        request.state.session = session
        response = await call_next(request)
        token = await run_in_threadpool(sessions.save, session)
        if session.purged:
            response.delete_cookie(COOKIE_NAME, **cookie_settings())
        elif token:
            response.set_cookie(COOKIE_NAME, token, max_age=sessions.max_age, **cookie_settings())
        return response

    app.mount("/resources", StaticFiles(directory=str(BASE_DIR / "static")), name="resources")
    app.include_router(router)
    logger.info("Weather Station app ready (links point to %s)", base_url)
    return app
