# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional

from argon2 import PasswordHasher
from argon2.exceptions import HashingError as Argon2HashingError
from argon2.exceptions import InvalidHashError, VerificationError

from authserver.errors import HashingError

MAX_PASSWORD_BYTES = 4096


class CredentialVerifier:
    """Salted argon2id hashing. Hashes of the same input never compare equal."""

    def __init__(self, hasher: Optional[PasswordHasher] = None) -> None:
        self._hasher = hasher or PasswordHasher()

    def hash(self, plain: str) -> str:
        if not plain:
            raise HashingError("Empty password")
        if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
            raise HashingError("Password too long")
        try:
            return self._hasher.hash(plain)
        except Argon2HashingError as exc:
            raise HashingError(str(exc)) from exc

    def verify(self, plain: str, hash_value: str) -> bool:
        if not hash_value or not plain:
            return False
        if not isinstance(plain, str) or not isinstance(hash_value, str):
            return False
        try:
            return self._hasher.verify(hash_value, plain)
        except (VerificationError, InvalidHashError):
            return False


_DEFAULT = CredentialVerifier()


def hash_password(plain: str) -> str:
    return _DEFAULT.hash(plain)


def verify_password(plain: str, hash_value: str) -> bool:
    return _DEFAULT.verify(plain, hash_value)
