from datetime import timedelta

import pytest

from authserver.auth.gate import AuthGate, payload_for
from authserver.auth.tokens import IdentityPayload
from authserver.errors import StoreUnavailable, VerificationFailure


class BrokenStore:
    def find_by_email(self, email):
        raise StoreUnavailable("database is down")

    def find_by_id(self, user_id):
        raise StoreUnavailable("database is down")

    def insert(self, name, email, password_hash):
        raise StoreUnavailable("database is down")

    def exists_by_email(self, email):
        raise StoreUnavailable("database is down")


class HangingStore(BrokenStore):
    def find_by_id(self, user_id):
        raise TimeoutError("lookup timed out")


class BuggyStore(BrokenStore):
    def find_by_id(self, user_id):
        raise ValueError("unexpected row shape")


@pytest.fixture()
def gate(sessions, store, verifier):
    return AuthGate(sessions, store, verifier)


def _cookies(codec, clock, payload, ttl=3600):
    return {"token": codec.issue(payload, clock.now() + timedelta(seconds=ttl))}


def test_no_cookie_is_anonymous(gate):
    assert gate.is_authenticated({}) is False
    assert gate.current_user({}) is None


def test_valid_token_resolves_user_from_store(gate, codec, clock):
    cookies = _cookies(codec, clock, IdentityPayload(id=1, name="Mallory", email="m@evil.example"))
    assert gate.is_authenticated(cookies) is True
    user = gate.current_user(cookies)
    assert user.id == 1
    # Display fields in the token are never trusted over the store.
    assert user.name == "Alice"
    assert user.email == "a@example.com"


def test_expired_token_is_anonymous(gate, codec, clock):
    cookies = _cookies(codec, clock, IdentityPayload(id=1), ttl=60)
    clock.advance(60)
    assert gate.is_authenticated(cookies) is False
    assert gate.current_user(cookies) is None


@pytest.mark.parametrize("token", ["garbage", "a.b.c", "...."])
def test_bad_tokens_are_anonymous(gate, token):
    assert gate.is_authenticated({"token": token}) is False
    assert gate.current_user({"token": token}) is None


def test_deleted_user_has_no_current_user(gate, store, codec, clock):
    cookies = _cookies(codec, clock, IdentityPayload(id=1))
    store.delete(1)
    assert gate.is_authenticated(cookies) is True
    assert gate.current_user(cookies) is None


@pytest.mark.parametrize("broken", [BrokenStore(), HangingStore(), BuggyStore()])
def test_store_failure_fails_closed(sessions, verifier, codec, clock, broken):
    gate = AuthGate(sessions, broken, verifier)
    assert gate.current_user(_cookies(codec, clock, IdentityPayload(id=1))) is None


def test_authenticate_success(gate):
    user = gate.authenticate("A@Example.com ", "secret123")
    assert user.id == 1


@pytest.mark.parametrize("email,password", [("a@example.com", "wrong"), ("nobody@example.com", "secret123"), ("", "")])
def test_authenticate_failures_look_the_same(gate, email, password):
    with pytest.raises(VerificationFailure) as info:
        gate.authenticate(email, password)
    assert str(info.value) == "Invalid credentials"


def test_authenticate_propagates_store_outage(sessions, verifier):
    gate = AuthGate(sessions, BrokenStore(), verifier)
    with pytest.raises(StoreUnavailable):
        gate.authenticate("a@example.com", "secret123")


def test_payload_for_user(store):
    user = store.find_by_id(1)
    assert payload_for(user) == IdentityPayload(id=1, name="Alice", email="a@example.com")
