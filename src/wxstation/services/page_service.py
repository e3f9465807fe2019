# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, Sequence

from jinja2 import Environment, FileSystemLoader, select_autoescape

from wxstation.core.context import RequestContext
from wxstation.core.results import FlowResult, Ok, Redirect
from wxstation.infra.user_repo import SETTINGS_FIELDS, settings_get

TEMPLATES_DIR = Path(__file__).resolve().parents[1] / "templates"

_ENV = Environment(
    loader=FileSystemLoader(str(TEMPLATES_DIR)),
    autoescape=select_autoescape(["html", "xml"]),
)

AUTH_PAGES = {
    "verified": "auth/verified.html",
    "registered": "auth/registered.html",
    "invalid_token": "auth/invalid_token.html",
}

# One sample every ten minutes, fencepost included.
SAMPLE_WINDOWS: Dict[str, int] = {"Day": 145, "Week": 1009, "Month": 4321, "QuarterYear": 12961}
DEFAULT_WINDOW = "QuarterYear"


def _prefs(values: Sequence[str]) -> Dict[str, str]:
    """Pair preference values with their field names (short input stays short)."""
    return dict(zip(SETTINGS_FIELDS, values))


def render(template_name: str, **context: Any) -> str:
    return _ENV.get_template(template_name).render(**context)


def render_login() -> str:
    return render("login.html")


def render_auth_page(name: str) -> str:
    return render(AUTH_PAGES[name])


def sample_window(timeframe: str) -> int:
    """Number of samples shown for `timeframe`; unknown values show the longest window."""
    return SAMPLE_WINDOWS.get(timeframe, SAMPLE_WINDOWS[DEFAULT_WINDOW])


def render_dashboard(preferences: Sequence[str], *, data_url: str = "") -> str:
    prefs = _prefs(preferences)
    return render(
        "index.html",
        prefs=prefs,
        data_url=data_url,
        windows=SAMPLE_WINDOWS,
        window=sample_window(prefs.get("timeframe", "")),
    )


def render_settings(preferences: Sequence[str], *, admin: bool) -> str:
    return render("settings.html", prefs=_prefs(preferences), admin=admin)


def dashboard_index(ctx: RequestContext) -> FlowResult:
    email = ctx.session.identity()
    if not email:
        return Redirect("/login")
    return Ok(render_dashboard(settings_get(ctx.store, email), data_url=ctx.data_url), html=True)
