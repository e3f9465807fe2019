# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Server-side sessions.

The cookie carries only a signed session id; the payload lives in the
key-value store under `session:<sid>` and expires with the cookie.
"""

from __future__ import annotations

import json
import logging
import os
import secrets
from typing import Any, Dict, Optional

from itsdangerous import BadSignature, BadTimeSignature, URLSafeTimedSerializer

from wxstation.infra.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

COOKIE_NAME = os.getenv("WXS_COOKIE_NAME", "wxs_session")
DEFAULT_MAX_AGE_SECONDS = int(os.getenv("WXS_SESSION_MAX_AGE", "86400"))  # 24 hours


def _serializer() -> URLSafeTimedSerializer:
    secret = os.getenv("WXS_SECRET_KEY") or os.getenv("SECRET_KEY")
    if not secret:
        raise RuntimeError("Missing WXS_SECRET_KEY (or SECRET_KEY) in environment")
    salt = os.getenv("WXS_SESSION_SALT", "wxstation.session.v1")
    return URLSafeTimedSerializer(secret_key=secret, salt=salt)


def sign_session_id(sid: str) -> str:
    return _serializer().dumps({"sid": sid})


def verify_session_id(token: str, *, max_age: int = DEFAULT_MAX_AGE_SECONDS) -> Optional[str]:
    if not token:
        return None
    s = _serializer()
    try:
        data = s.loads(token, max_age=max_age)
    except (BadSignature, BadTimeSignature):
        return None
    sid = str((data or {}).get("sid") or "").strip()
    return sid or None


def session_key(sid: str) -> str:
    return f"session:{sid}"


class Session:
    """Mutable bag of JSON values for one client."""

    def __init__(self, sid: Optional[str] = None, data: Optional[Dict[str, Any]] = None):
        self.sid = sid
        self._data: Dict[str, Any] = dict(data or {})
        self.modified = False
        self.purged = False

    def get(self, key: str, default: Any = None) -> Any:
        return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        self._data[key] = value
        self.modified = True

    def pop(self, key: str) -> Any:
        if key in self._data:
            self.modified = True
        return self._data.pop(key, None)

    def purge(self) -> None:
        self._data.clear()
        self.purged = True
        self.modified = False

    def to_dict(self) -> Dict[str, Any]:
        return dict(self._data)


class SessionStore:
    def __init__(self, store: KeyValueStore, *, max_age: int = DEFAULT_MAX_AGE_SECONDS):
        self.store = store
        self.max_age = max_age

    def load(self, token: str) -> Session:
        """Return the session for a cookie value; unknown or tampered cookies get a fresh one."""
        sid = verify_session_id(token, max_age=self.max_age)
        if not sid:
            return Session()
        raw = self.store.get(session_key(sid))
        if raw is None:
            return Session()
        try:
            data = json.loads(raw)
        except ValueError:
            logger.warning("Discarding unreadable session payload")
            return Session()
        if not isinstance(data, dict):
            return Session()
        return Session(sid, data)

    def save(self, session: Session) -> Optional[str]:
        """Persist a modified session; returns the cookie value to set, if any."""
        if session.purged:
            if session.sid:
                self.store.delete(session_key(session.sid))
            return None
        if not session.modified:
            return None
        if not session.sid:
            session.sid = secrets.token_urlsafe(32)
        self.store.set(session_key(session.sid), json.dumps(session.to_dict()), ex=self.max_age)
        session.modified = False
        return sign_session_id(session.sid)
