# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations


class AuthError(Exception):
    """Base class for every error raised by authserver."""


class HashingError(AuthError):
    """The password hashing primitive rejected its input."""


class VerificationFailure(AuthError):
    """Credentials did not check out (wrong password, unknown user or corrupt hash)."""


class TokenError(AuthError):
    kind = "token"


class Malformed(TokenError):
    kind = "malformed"


class InvalidSignature(TokenError):
    kind = "invalid_signature"


class Expired(TokenError):
    kind = "expired"


class StoreError(AuthError):
    pass


class StoreUnavailable(StoreError):
    pass


class NotFound(StoreError):
    pass


class ConstraintError(StoreError):
    def __init__(self, field: str, message: str) -> None:
        super().__init__(f"{field}: {message}")
        self.field = field
        self.message = message
