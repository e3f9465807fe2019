# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from wxstation.auth.session import Session
from wxstation.infra.kv_store import KeyValueStore
from wxstation.infra.mailer import Mailer

IDENTITY_FIELD = "email"
PENDING_LOGIN_FIELD = "pending_login"


@dataclass(frozen=True)
class LoginChallenge:
    email: str
    challenge: str

    def to_dict(self) -> dict:
        return {"email": self.email, "challenge": self.challenge}

    @classmethod
    def from_dict(cls, data: object) -> Optional["LoginChallenge"]:
        if not isinstance(data, dict):
            return None
        email = str(data.get("email") or "")
        challenge = str(data.get("challenge") or "")
        if not email or not challenge:
            return None
        return cls(email=email, challenge=challenge)


class SessionAccessor:
    """The only session operations the flows are allowed to perform."""

    def __init__(self, session: Session):
        self._session = session

    def identity(self) -> Optional[str]:
        value = self._session.get(IDENTITY_FIELD)
        return str(value) if value else None

    def is_authenticated(self) -> bool:
        return self.identity() is not None

    def login_as(self, email: str) -> None:
        self._session.set(IDENTITY_FIELD, email)
        self._session.pop(PENDING_LOGIN_FIELD)

    def pending_login(self) -> Optional[LoginChallenge]:
        return LoginChallenge.from_dict(self._session.get(PENDING_LOGIN_FIELD))

    def set_pending_login(self, pending: LoginChallenge) -> None:
        self._session.set(PENDING_LOGIN_FIELD, pending.to_dict())

    def purge(self) -> None:
        self._session.purge()


@dataclass
class RequestContext:
    """Everything a flow may touch for one request."""

    session: SessionAccessor
    store: KeyValueStore
    mailer: Mailer
    public_url: str
    data_url: str = ""
