import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

import re

import pytest
from fastapi.testclient import TestClient

from wxstation.auth.session import Session
from wxstation.core.context import RequestContext, SessionAccessor
from wxstation.infra.kv_store import InMemoryStore
from wxstation.infra.mailer import MailDeliveryError
from wxstation.infra.user_repo import user_add

PUBLIC_URL = "https://weather.example.org"

TOKEN_RE = re.compile(r"\?c=([A-Za-z0-9_\-]+)")


class RecordingMailer:
    """Keeps sent messages in memory; set `fail` to simulate a relay outage."""

    def __init__(self):
        self.sent = []
        self.fail = False

    def send(self, recipient, subject, html):
        if self.fail:
            raise MailDeliveryError("relay unavailable")
        self.sent.append({"to": recipient, "subject": subject, "html": html})

    def last_token(self) -> str:
        assert self.sent, "no mail was sent"
        m = TOKEN_RE.search(self.sent[-1]["html"])
        assert m, self.sent[-1]["html"]
        return m.group(1)


@pytest.fixture(autouse=True)
def secret_key(monkeypatch):
    monkeypatch.setenv("WXS_SECRET_KEY", "test-secret-not-for-production")


@pytest.fixture()
def store() -> InMemoryStore:
    s = InMemoryStore()
    user_add(s, "admin@x.com", admin=True)
    user_add(s, "user@x.com")
    return s


@pytest.fixture()
def mailer() -> RecordingMailer:
    return RecordingMailer()


@pytest.fixture()
def make_ctx(store, mailer):
    """Build a flow context around a (possibly shared) session."""

    def _make(session=None):
        return RequestContext(
            session=SessionAccessor(session if session is not None else Session()),
            store=store,
            mailer=mailer,
            public_url=PUBLIC_URL,
        )

    return _make


@pytest.fixture()
def client(store, mailer):
    from wxstation.app import create_app

    app = create_app(store=store, mailer=mailer, public_url=PUBLIC_URL)
    with TestClient(app) as c:
        yield c


def login(client, mailer, email):
    """Run the full login exchange on `client` and return the verify response."""
    r = client.post("/login", json={"email": email})
    assert r.status_code == 200
    return client.get("/verify_login", params={"c": mailer.last_token()})
