import threading
from unittest import mock

import pytest

from wxstation.auth import flow
from wxstation.auth.session import Session
from wxstation.core.context import RequestContext, SessionAccessor
from wxstation.core.results import Ok, Redirect, Rejected
from wxstation.infra.kv_store import InMemoryStore
from wxstation.infra.user_repo import (
    REGISTRATION_TTL_SECONDS,
    read_user_role,
    register_email,
    register_key,
    settings_get,
    user_add,
    user_exists,
)

from conftest import PUBLIC_URL

MALFORMED = ["", "not-an-email", "a@", "@x.com", "a@@x.com"]


def _logged_in(email):
    s = Session()
    s.set("email", email)
    return s


# ------------------ login ------------------


@pytest.mark.parametrize("email", MALFORMED)
def test_begin_login_rejects_malformed_before_io(email):
    store, mailer = mock.Mock(), mock.Mock()
    ctx = RequestContext(SessionAccessor(Session()), store, mailer, PUBLIC_URL)
    assert flow.begin_login(ctx, email) == Rejected(422, flow.INVALID_EMAIL)
    assert store.method_calls == []
    assert mailer.method_calls == []


def test_unknown_email_gets_same_answer_and_nothing_else(make_ctx, mailer):
    session = Session()
    result = flow.begin_login(make_ctx(session), "nobody@x.com")
    assert result == Ok(flow.CHECK_MAIL)
    assert mailer.sent == []
    assert session.get("pending_login") is None


def test_known_email_issues_one_challenge_and_one_mail(make_ctx, mailer):
    session = Session()
    result = flow.begin_login(make_ctx(session), "user@x.com")
    assert result == Ok(flow.CHECK_MAIL)
    assert len(mailer.sent) == 1
    assert mailer.sent[0]["to"] == "user@x.com"
    assert mailer.sent[0]["subject"] == "Weather Station Login Attempt"
    pending = session.get("pending_login")
    assert pending == {"email": "user@x.com", "challenge": mailer.last_token()}
    assert f"{PUBLIC_URL}/verify_login?c={pending['challenge']}" in mailer.sent[0]["html"]


def test_second_login_overwrites_pending_record(make_ctx, mailer):
    session = Session()
    ctx = make_ctx(session)
    flow.begin_login(ctx, "user@x.com")
    first = mailer.last_token()
    flow.begin_login(ctx, "user@x.com")
    second = mailer.last_token()
    assert first != second
    assert session.get("pending_login")["challenge"] == second
    assert flow.verify_login(make_ctx(session), first).status_code == 401


def test_mail_failure_is_500(make_ctx, mailer):
    mailer.fail = True
    assert flow.begin_login(make_ctx(), "user@x.com") == Rejected(500, flow.MAIL_FAILED)


def test_begin_login_when_authenticated_redirects_home(make_ctx, mailer):
    assert flow.begin_login(make_ctx(_logged_in("user@x.com")), "user@x.com") == Redirect("/")
    assert mailer.sent == []


def test_verify_without_pending_redirects_to_login(make_ctx):
    assert flow.verify_login(make_ctx(), "anything") == Redirect("/login")


def test_verify_login_mismatch_keeps_pending(make_ctx, mailer):
    session = Session()
    ctx = make_ctx(session)
    flow.begin_login(ctx, "user@x.com")
    before = session.get("pending_login")

    result = flow.verify_login(ctx, "wrong-token")
    assert isinstance(result, Rejected) and result.status_code == 401
    assert "Invalid or expired link" in result.body
    assert session.get("pending_login") == before
    assert flow.poll_login(ctx) == Rejected(406, "")

    # retry with the right link still works
    result = flow.verify_login(ctx, mailer.last_token())
    assert isinstance(result, Ok)


def test_verify_login_match_authenticates(make_ctx, mailer):
    session = Session()
    ctx = make_ctx(session)
    flow.begin_login(ctx, "user@x.com")
    result = flow.verify_login(ctx, mailer.last_token())
    assert isinstance(result, Ok) and "Login approved" in result.body
    assert session.get("email") == "user@x.com"
    assert session.get("pending_login") is None
    assert flow.poll_login(ctx) == Ok("")


def test_logout_purges_only_authenticated_sessions(make_ctx):
    anon = Session()
    assert flow.logout(make_ctx(anon)) == Redirect("/login")
    assert not anon.purged

    session = _logged_in("user@x.com")
    assert flow.logout(make_ctx(session)) == Redirect("/login")
    assert session.purged
    assert session.get("email") is None


def test_login_page(make_ctx):
    assert flow.login_page(make_ctx(_logged_in("user@x.com"))) == Redirect("/")
    result = flow.login_page(make_ctx())
    assert isinstance(result, Ok) and result.html


# ------------------ registration ------------------


@pytest.mark.parametrize("caller", [None, "user@x.com", "ghost@x.com"])
@pytest.mark.parametrize("email", ["new@x.com", "bad-address"])
def test_registration_requires_admin(make_ctx, mailer, store, caller, email):
    session = _logged_in(caller) if caller else Session()
    assert flow.begin_registration(make_ctx(session), email) == Rejected(401)
    assert mailer.sent == []
    assert not any(k.startswith("register:") for k in store.keys())


@pytest.mark.parametrize("email", MALFORMED)
def test_registration_rejects_malformed(make_ctx, mailer, email):
    result = flow.begin_registration(make_ctx(_logged_in("admin@x.com")), email)
    assert result == Rejected(422, flow.INVALID_EMAIL)
    assert mailer.sent == []


def test_registration_of_existing_user_is_rejected(make_ctx, mailer, store):
    result = flow.begin_registration(make_ctx(_logged_in("admin@x.com")), "user@x.com")
    assert result == Rejected(422, flow.ALREADY_REGISTERED)
    assert mailer.sent == []
    assert not any(k.startswith("register:") for k in store.keys())


def test_registration_writes_expiring_record_and_mails_link(make_ctx, mailer, store):
    with mock.patch.object(store, "set", wraps=store.set) as spy:
        result = flow.begin_registration(make_ctx(_logged_in("admin@x.com")), "new@x.com")
    assert result == Ok(flow.CHECK_MAIL)

    token = mailer.last_token()
    assert mailer.sent[0]["subject"] == "Weather Station Registration"
    assert f"{PUBLIC_URL}/verify_register?c={token}" in mailer.sent[0]["html"]
    spy.assert_called_once_with(register_key(token), "new@x.com", ex=REGISTRATION_TTL_SECONDS)
    assert store.get(register_key(token)) == "new@x.com"
    assert not user_exists(store, "new@x.com")


def test_registration_mail_failure_is_500(make_ctx, mailer):
    mailer.fail = True
    result = flow.begin_registration(make_ctx(_logged_in("admin@x.com")), "new@x.com")
    assert result == Rejected(500, flow.MAIL_FAILED)


def test_verify_registration_consumes_token_once(make_ctx, mailer, store):
    flow.begin_registration(make_ctx(_logged_in("admin@x.com")), "new@x.com")
    token = mailer.last_token()

    first = flow.verify_registration(make_ctx(), token)
    assert isinstance(first, Ok) and "Registration complete" in first.body
    assert read_user_role(store, "new@x.com") == ""
    assert settings_get(store, "new@x.com") == ("Celsius", "Bar", "Light", "Week")
    assert store.get(register_key(token)) is None

    second = flow.verify_registration(make_ctx(), token)
    assert isinstance(second, Rejected) and second.status_code == 401
    assert user_exists(store, "new@x.com")


def test_verify_registration_unknown_token(make_ctx):
    result = flow.verify_registration(make_ctx(), "never-issued")
    assert isinstance(result, Rejected) and result.status_code == 401
    assert flow.verify_registration(make_ctx(), "").status_code == 401


def test_poll_login(make_ctx):
    assert flow.poll_login(make_ctx()) == Rejected(406, "")
    assert flow.poll_login(make_ctx(_logged_in("user@x.com"))) == Ok("")


def test_verify_login_non_ascii_token_is_rejected(make_ctx, mailer):
    session = Session()
    ctx = make_ctx(session)
    flow.begin_login(ctx, "user@x.com")
    result = flow.verify_login(ctx, "clé-météo")
    assert isinstance(result, Rejected) and result.status_code == 401
    assert session.get("email") is None


class RendezvousStore(InMemoryStore):
    """Holds registration lookups until both verifiers have read the record."""

    def __init__(self, parties):
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)

    def get(self, key):
        value = super().get(key)
        if key.startswith("register:"):
            self.barrier.wait()
        return value


def test_concurrent_registration_verifications_accept_one(mailer):
    store = RendezvousStore(parties=2)
    user_add(store, "admin@x.com", admin=True)
    register_email(store, "new@x.com", "tok")
    results = []

    def verify():
        ctx = RequestContext(SessionAccessor(Session()), store, mailer, PUBLIC_URL)
        results.append(flow.verify_registration(ctx, "tok"))

    threads = [threading.Thread(target=verify) for _ in range(2)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sorted(type(r).__name__ for r in results) == ["Ok", "Rejected"]
    assert [r.status_code for r in results if isinstance(r, Rejected)] == [401]
    assert settings_get(store, "new@x.com") == ("Celsius", "Bar", "Light", "Week")
    assert not store.exists(register_key("tok"))
