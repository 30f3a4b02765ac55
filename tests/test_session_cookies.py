from datetime import timedelta, timezone
from email.utils import parsedate_to_datetime
from http.cookies import SimpleCookie

from fastapi import Response

from authserver.auth.session import COOKIE_NAME
from authserver.auth.tokens import IdentityPayload

ALICE = IdentityPayload(id=1, name="Alice", email="a@example.com")


def _set_cookies(response: Response):
    return [v.decode("latin-1") for k, v in response.raw_headers if k == b"set-cookie"]


def _morsel(header: str):
    c = SimpleCookie()
    c.load(header)
    return c[COOKIE_NAME]


def test_attach_sets_one_token_cookie(sessions, clock):
    resp = Response()
    token = sessions.attach(resp, ALICE)

    headers = _set_cookies(resp)
    assert len(headers) == 1
    lowered = headers[0].lower()
    assert "path=/" in lowered
    assert "domain=example.com" in lowered
    assert "max-age=18000" in lowered
    assert "httponly" in lowered
    assert "samesite=lax" in lowered

    morsel = _morsel(headers[0])
    assert not morsel["secure"]
    assert morsel.value == token
    expires = parsedate_to_datetime(morsel["expires"])
    assert expires == clock.now() + timedelta(seconds=18000)
    assert sessions.codec.verify(token) == ALICE


def test_attach_twice_overwrites(sessions):
    resp = Response()
    sessions.attach(resp, ALICE)
    second = sessions.attach(resp, IdentityPayload(id=2))
    headers = _set_cookies(resp)
    assert len(headers) == 1
    assert _morsel(headers[0]).value == second


def test_attach_keeps_unrelated_cookies(sessions):
    resp = Response()
    resp.set_cookie("theme", "dark")
    sessions.attach(resp, ALICE)
    headers = _set_cookies(resp)
    assert len(headers) == 2
    assert any(h.startswith("theme=") for h in headers)


def test_attach_ttl_and_flag_overrides(sessions, clock):
    resp = Response()
    token = sessions.attach(resp, ALICE, timedelta(minutes=10), secure=True, httponly=False)
    header = _set_cookies(resp)[0]
    assert "max-age=600" in header.lower()
    morsel = _morsel(header)
    assert morsel["secure"]
    assert not morsel["httponly"]
    assert morsel.value == token

    clock.advance(599)
    assert sessions.codec.verify(token) == ALICE


def test_expires_is_utc(sessions):
    resp = Response()
    sessions.attach(resp, ALICE)
    expires = parsedate_to_datetime(_morsel(_set_cookies(resp)[0])["expires"])
    assert expires.tzinfo is not None
    assert expires.utcoffset() == timezone.utc.utcoffset(None)


def test_extract_token(sessions):
    assert sessions.extract_token({}) is None
    assert sessions.extract_token({"token": ""}) is None
    assert sessions.extract_token({"token": "  "}) is None
    assert sessions.extract_token({"other": "x"}) is None
    assert sessions.extract_token({"token": "abc.def.ghi"}) == "abc.def.ghi"


def test_clear_expires_cookie_with_same_scope(sessions):
    resp = Response()
    sessions.clear(resp)
    headers = _set_cookies(resp)
    assert len(headers) == 1
    lowered = headers[0].lower()
    assert lowered.startswith('token=""') or lowered.startswith("token=;")
    assert "max-age=-1" in lowered
    assert "1970" in lowered
    assert "path=/" in lowered
    assert "domain=example.com" in lowered


def test_clear_replaces_earlier_attach(sessions):
    resp = Response()
    sessions.attach(resp, ALICE)
    sessions.clear(resp)
    headers = _set_cookies(resp)
    assert len(headers) == 1
    assert "max-age=-1" in headers[0].lower()
