import sys
from pathlib import Path as _Path
sys.path.insert(0, str(_Path(__file__).resolve().parents[1] / "src"))

from datetime import datetime, timedelta, timezone

import pytest
from argon2 import PasswordHasher
from fastapi.testclient import TestClient

from authserver.app import create_app
from authserver.auth.passwords import CredentialVerifier
from authserver.auth.session import SessionCookieManager
from authserver.auth.tokens import StaticSecret, TokenCodec
from authserver.auth.users import MemoryUserStore
from authserver.config import Settings

SECRET = "test-secret-for-signing-sessions"


class FixedClock:
    """Clock that only moves when told to."""

    def __init__(self, start: datetime) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current = self.current + timedelta(seconds=seconds)


@pytest.fixture()
def clock() -> FixedClock:
    # Starts at wall-clock time so cookie jars in HTTP tests keep the cookies.
    return FixedClock(datetime.now(timezone.utc).replace(microsecond=0))


@pytest.fixture()
def verifier() -> CredentialVerifier:
    # Cheap parameters keep the suite fast; production uses argon2 defaults.
    return CredentialVerifier(PasswordHasher(time_cost=1, memory_cost=1024, parallelism=1))


@pytest.fixture()
def codec(clock) -> TokenCodec:
    return TokenCodec(StaticSecret(SECRET.encode()), clock=clock)


@pytest.fixture()
def sessions(codec) -> SessionCookieManager:
    return SessionCookieManager(codec, domain="example.com", ttl=18000)


@pytest.fixture()
def store(verifier) -> MemoryUserStore:
    s = MemoryUserStore()
    s.insert("Alice", "a@example.com", verifier.hash("secret123"))
    return s


@pytest.fixture()
def settings(tmp_path) -> Settings:
    return Settings(secret_key=SECRET, users_path=tmp_path / "users.yml")


@pytest.fixture()
def app(settings, store, clock, verifier):
    return create_app(settings, store, clock=clock, verifier=verifier)


@pytest.fixture()
def client(app) -> TestClient:
    return TestClient(app)
