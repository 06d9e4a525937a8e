import json
from datetime import datetime, timedelta, timezone

import jwt
import pytest

from memoryhaze.auth.session import MemoryTokenStore, Session, TokenStore, decode_token
from memoryhaze.utils.exceptions import AuthorizationError


def make_token(payload, secret="session-test-secret-0123456789abcdef"):
    return jwt.encode(payload, secret, algorithm="HS256")


def future(hours=1):
    return int((datetime.now(timezone.utc) + timedelta(hours=hours)).timestamp())


def test_login_derives_claims_from_nested_user():
    session = Session()
    token = make_token({"user": {"id": "u1", "isAdmin": True}, "exp": future()})

    assert session.login(token) is True
    assert session.is_authenticated
    assert session.is_fresh()
    assert session.is_admin
    assert session.subject_id == "u1"
    assert session.auth_headers() == {"Authorization": f"Bearer {token}"}


def test_admin_flag_falls_back_to_top_level_claim():
    session = Session()
    session.login(make_token({"id": "u2", "isAdmin": True, "exp": future()}))
    assert session.is_admin
    assert session.subject_id == "u2"


def test_missing_admin_flag_means_customer():
    session = Session()
    session.login(make_token({"user": {"id": "u3"}, "exp": future()}))
    assert not session.is_admin


def test_malformed_token_is_ignored():
    store = MemoryTokenStore()
    session = Session(store)

    assert session.login("not-a-jwt") is False
    assert not session.is_authenticated
    assert store.token is None
    assert decode_token("not-a-jwt") is None


def test_expired_token_is_kept_but_not_fresh():
    expired = make_token({"user": {"id": "u1"}, "exp": future(hours=-1)})
    store = MemoryTokenStore(expired)
    session = Session(store)

    assert session.restore() is True
    assert session.is_authenticated
    assert not session.is_fresh()
    # Nothing destructive happens on expiry
    assert store.token == expired

    with pytest.raises(AuthorizationError) as exc_info:
        session.require_authenticated(next_path="/gifts/abc")
    assert exc_info.value.reason == AuthorizationError.UNAUTHENTICATED
    assert exc_info.value.redirect_to == "/login?next=/gifts/abc"
    assert store.token == expired


def test_login_redirect_quotes_next_path():
    with pytest.raises(AuthorizationError) as exc_info:
        Session().require_authenticated(next_path="/gifts/g1/a b?x=1")
    assert exc_info.value.redirect_to == "/login?next=/gifts/g1/a%20b%3Fx%3D1"

    with pytest.raises(AuthorizationError) as exc_info:
        Session().require_authenticated()
    assert exc_info.value.redirect_to == "/login"


def test_is_fresh_against_explicit_clock():
    session = Session()
    exp = datetime(2030, 1, 1, tzinfo=timezone.utc)
    session.login(make_token({"user": {"id": "u1"}, "exp": int(exp.timestamp())}))

    assert session.is_fresh(now=exp - timedelta(seconds=1))
    assert not session.is_fresh(now=exp)


def test_logout_clears_and_returns_landing_path():
    store = MemoryTokenStore()
    session = Session(store)
    session.login(make_token({"user": {"id": "u1", "isAdmin": True}, "exp": future()}))

    assert session.logout() == "/"
    assert not session.is_authenticated
    assert not session.is_admin
    assert store.token is None
    assert session.auth_headers() == {}


def test_require_admin_rejects_customer_with_landing_redirect():
    session = Session()
    session.login(make_token({"user": {"id": "u1", "isAdmin": False}, "exp": future()}))

    with pytest.raises(AuthorizationError) as exc_info:
        session.require_admin()
    assert exc_info.value.reason == AuthorizationError.FORBIDDEN
    assert exc_info.value.redirect_to == "/"


def test_new_login_supersedes_previous_token():
    session = Session()
    session.login(make_token({"user": {"id": "first"}, "exp": future()}))
    session.login(make_token({"user": {"id": "second"}, "exp": future()}))
    assert session.subject_id == "second"


def test_token_store_persists_to_disk(tmp_path):
    path = tmp_path / "data" / "session.json"
    token = make_token({"user": {"id": "u1"}, "exp": future()})

    Session(TokenStore(path)).login(token)
    assert json.loads(path.read_text(encoding="utf-8")) == {"token": token}

    restored = Session(TokenStore(path))
    assert restored.restore() is True
    assert restored.subject_id == "u1"

    restored.logout()
    assert TokenStore(path).load() is None


def test_token_store_tolerates_corrupt_file(tmp_path):
    path = tmp_path / "session.json"
    path.write_text("{broken", encoding="utf-8")
    assert TokenStore(path).load() is None
    assert Session(TokenStore(path)).restore() is False
