# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import logging
from typing import Dict, Mapping, Tuple

from wxstation.core.context import RequestContext
from wxstation.core.results import FlowResult, Ok, Redirect
from wxstation.infra.kv_store import KeyValueStore
from wxstation.infra.user_repo import SETTINGS_FIELDS, settings_get, settings_set, user_is_admin
from wxstation.services.page_service import render_settings

logger = logging.getLogger(__name__)

ALLOWED_VALUES: Dict[str, Tuple[str, ...]] = {
    "temperature": ("Celsius", "Kelvin", "Fahrenheit"),
    "pressure": ("Atmosphere", "Millibar", "Bar", "PSI", "Mercury"),
    "theme": ("Light", "Dark"),
    "timeframe": ("Week", "Month", "QuarterYear"),
}


def validate_preferences(temperature: str, pressure: str, theme: str, timeframe: str) -> bool:
    candidate = dict(zip(SETTINGS_FIELDS, (temperature, pressure, theme, timeframe)))
    return all(candidate[f] in ALLOWED_VALUES[f] for f in SETTINGS_FIELDS)


def read_preferences(store: KeyValueStore, email: str) -> Tuple[str, ...]:
    return settings_get(store, email)


def write_preferences(
    store: KeyValueStore,
    email: str,
    temperature: str,
    pressure: str,
    theme: str,
    timeframe: str,
) -> bool:
    """Write all four preferences at once, or nothing if any value is invalid."""
    if not validate_preferences(temperature, pressure, theme, timeframe):
        return False
    settings_set(store, email, (temperature, pressure, theme, timeframe))
    return True


def settings_index(ctx: RequestContext) -> FlowResult:
    email = ctx.session.identity()
    if not email:
        return Redirect("/login")
    prefs = read_preferences(ctx.store, email)
    return Ok(render_settings(prefs, admin=user_is_admin(ctx.store, email)), html=True)


def settings_save(ctx: RequestContext, form: Mapping[str, str]) -> FlowResult:
    email = ctx.session.identity()
    if not email:
        return Redirect("/login")
    saved = write_preferences(
        ctx.store,
        email,
        form.get("temperature", ""),
        form.get("pressure", ""),
        form.get("theme", ""),
        form.get("timeframe", ""),
    )
    if not saved:
        logger.info("Ignoring invalid settings submission")
    return Redirect("/settings")
