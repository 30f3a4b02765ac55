import pytest

from authserver.auth.passwords import MAX_PASSWORD_BYTES, hash_password, verify_password
from authserver.errors import HashingError


def test_hash_then_verify(verifier):
    h = verifier.hash("secret123")
    assert h.startswith("$argon2id$")
    assert "secret123" not in h
    assert verifier.verify("secret123", h) is True


def test_hashes_are_salted(verifier):
    h1 = verifier.hash("secret123")
    h2 = verifier.hash("secret123")
    assert h1 != h2
    assert verifier.verify("secret123", h1)
    assert verifier.verify("secret123", h2)


def test_wrong_password_is_false(verifier):
    h = verifier.hash("secret123")
    assert verifier.verify("secret124", h) is False
    assert verifier.verify("", h) is False


@pytest.mark.parametrize(
    "stored",
    [
        "",
        "not-a-hash",
        "$argon2id$v=19$m=1024,t=1,p=1$garbage",
        "$2b$10$N9qo8uLOickgx2ZMRZoMyeIjZAgcfl7p92ldGxad68LJZdL17lhWy",
    ],
)
def test_corrupt_or_foreign_hash_is_false(verifier, stored):
    assert verifier.verify("secret123", stored) is False


def test_empty_password_cannot_be_hashed(verifier):
    with pytest.raises(HashingError):
        verifier.hash("")


def test_oversize_password_cannot_be_hashed(verifier):
    with pytest.raises(HashingError):
        verifier.hash("x" * (MAX_PASSWORD_BYTES + 1))


def test_module_helpers_use_default_verifier():
    h = hash_password("hunter22")
    assert verify_password("hunter22", h)
    assert not verify_password("hunter23", h)
