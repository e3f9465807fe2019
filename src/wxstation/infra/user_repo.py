# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""User, pending registration and preference records in the key-value store.

Layout:
  user:<email>                          "" or "admin"
  register:<token>                      pending email (expires)
  settings:<email>:units:temperature
  settings:<email>:units:pressure
  settings:<email>:theme
  settings:<email>:timeframe
"""

from __future__ import annotations

from typing import Dict, List, Optional, Sequence, Tuple

from wxstation.infra.kv_store import KeyValueStore

ADMIN_MARKER = "admin"
REGISTRATION_TTL_SECONDS = 3600

# Order matters: preference tuples follow this order everywhere.
SETTINGS_FIELDS: Tuple[str, ...] = ("temperature", "pressure", "theme", "timeframe")

DEFAULT_SETTINGS: Dict[str, str] = {
    "temperature": "Celsius",
    "pressure": "Bar",
    "theme": "Light",
    "timeframe": "Week",
}


def user_key(email: str) -> str:
    return f"user:{email}"


def register_key(token: str) -> str:
    return f"register:{token}"


def settings_keys(email: str) -> List[str]:
    return [
        f"settings:{email}:units:temperature",
        f"settings:{email}:units:pressure",
        f"settings:{email}:theme",
        f"settings:{email}:timeframe",
    ]


def user_exists(store: KeyValueStore, email: str) -> bool:
    return store.exists(user_key(email))


def read_user_role(store: KeyValueStore, email: str) -> Optional[str]:
    """Raw user record value: None if unknown, "" for ordinary users, "admin" for admins."""
    return store.get(user_key(email))


def user_is_admin(store: KeyValueStore, email: str) -> bool:
    return read_user_role(store, email) == ADMIN_MARKER


def user_add(store: KeyValueStore, email: str, *, admin: bool = False) -> None:
    """Create the user record together with its default preferences (one MSET)."""
    mapping = {user_key(email): ADMIN_MARKER if admin else ""}
    for field, key in zip(SETTINGS_FIELDS, settings_keys(email)):
        mapping[key] = DEFAULT_SETTINGS[field]
    store.mset(mapping)


def register_email(store: KeyValueStore, email: str, token: str) -> None:
    """Store a pending registration; value and expiry are written in one SET."""
    store.set(register_key(token), email, ex=REGISTRATION_TTL_SECONDS)


def register_lookup(store: KeyValueStore, token: str) -> Optional[str]:
    if not token:
        return None
    return store.get(register_key(token))


def register_remove(store: KeyValueStore, token: str) -> bool:
    """Delete a pending registration; True only for the caller that removed it."""
    return store.delete(register_key(token)) > 0


def settings_get(store: KeyValueStore, email: str) -> Tuple[str, ...]:
    """Return (temperature, pressure, theme, timeframe); absent keys are skipped."""
    values = store.mget(settings_keys(email))
    return tuple(v for v in values if v is not None)


def settings_set(store: KeyValueStore, email: str, values: Sequence[str]) -> None:
    store.mset(dict(zip(settings_keys(email), values)))
