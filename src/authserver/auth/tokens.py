# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Signed, self-contained session tokens.

A token is ``<payload>.<expiry>.<signature>``: canonical JSON of the identity
payload, the expiry as integer epoch seconds, and an HMAC-SHA256 signature over
both. Every part is unpadded base64url so the token can travel in a cookie.
"""

from __future__ import annotations

import hashlib
import hmac
import json
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Protocol, Union

from itsdangerous import BadData, Signer
from itsdangerous.encoding import base64_decode, base64_encode, bytes_to_int, int_to_bytes, want_bytes

from authserver.errors import Expired, InvalidSignature, Malformed

TOKEN_SALT = "authserver.session.v1"
SEP = b"."

UserId = Union[int, str]


class Clock(Protocol):
    def now(self) -> datetime: ...


class SystemClock:
    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class SecretProvider(Protocol):
    def current_secret(self) -> bytes: ...


@dataclass(frozen=True)
class StaticSecret:
    secret: bytes

    def current_secret(self) -> bytes:
        return self.secret


@dataclass(frozen=True)
class IdentityPayload:
    """What a token says about its holder.

    Only ``id`` is authoritative; ``name`` and ``email`` are display shortcuts
    and may be stale.
    """

    id: UserId
    name: Optional[str] = None
    email: Optional[str] = None

    def to_claims(self) -> Dict[str, Any]:
        claims: Dict[str, Any] = {"id": self.id}
        if self.name is not None:
            claims["name"] = self.name
        if self.email is not None:
            claims["email"] = self.email
        return claims

    @classmethod
    def from_claims(cls, claims: Any) -> "IdentityPayload":
        if not isinstance(claims, dict):
            raise Malformed("Token payload is not an object")
        uid = claims.get("id")
        if isinstance(uid, bool) or not isinstance(uid, (int, str)) or uid == "":
            raise Malformed("Token payload has no usable id")
        name = claims.get("name")
        email = claims.get("email")
        for value in (name, email):
            if value is not None and not isinstance(value, str):
                raise Malformed("Token display fields must be strings")
        return cls(id=uid, name=name, email=email)


def _epoch_seconds(moment: datetime) -> int:
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    return int(moment.timestamp())


class TokenCodec:
    def __init__(self, secrets: SecretProvider, *, clock: Optional[Clock] = None, salt: str = TOKEN_SALT) -> None:
        secret = secrets.current_secret()
        if not secret:
            raise RuntimeError("Token signing secret is empty")
        self._signer = Signer(
            secret,
            salt=salt,
            sep=SEP,
            key_derivation="hmac",
            digest_method=hashlib.sha256,
        )
        self.clock: Clock = clock or SystemClock()

    def issue(self, payload: IdentityPayload, expiry: datetime) -> str:
        expires_at = _epoch_seconds(expiry)
        if expires_at < 0:
            raise ValueError("Token expiry must be after the epoch")
        body = json.dumps(payload.to_claims(), separators=(",", ":"), sort_keys=True, ensure_ascii=True)
        value = base64_encode(body.encode("utf-8")) + SEP + base64_encode(int_to_bytes(expires_at))
        return self._signer.sign(value).decode("ascii")

    def verify(self, token: str) -> IdentityPayload:
        if not token or not isinstance(token, str):
            raise Malformed("Empty token")

        signed, sep, signature = want_bytes(token).rpartition(SEP)
        if not sep or not signed:
            raise Malformed("Token has no signature part")

        # Compared as text so non-canonical base64 spellings of a valid
        # signature are rejected too.
        if not hmac.compare_digest(self._signer.get_signature(signed), signature):
            raise InvalidSignature("Token signature mismatch")

        body, sep, stamp = signed.rpartition(SEP)
        if not sep:
            raise Malformed("Token has no expiry part")
        try:
            claims = json.loads(base64_decode(body).decode("utf-8"))
            expires_at = bytes_to_int(base64_decode(stamp))
        except (BadData, ValueError) as exc:
            raise Malformed(f"Token content cannot be decoded: {exc}") from exc

        payload = IdentityPayload.from_claims(claims)
        if _epoch_seconds(self.clock.now()) >= expires_at:
            raise Expired("Token expired")
        return payload

    def expires_at(self, expiry: datetime) -> datetime:
        """Expiry as it will be embedded (whole seconds, UTC)."""
        return datetime.fromtimestamp(_epoch_seconds(expiry), tz=timezone.utc)
