# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Mapping, Optional, Union

from fastapi import Response

from authserver.auth.tokens import IdentityPayload, TokenCodec
from authserver.config import DEFAULT_SESSION_TTL_SECONDS, Settings

COOKIE_NAME = "token"
COOKIE_PATH = "/"
EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

Ttl = Union[int, timedelta]


def set_single_cookie(response: Response, key: str, value: str, **kwargs: Any) -> None:
    """Set a cookie, dropping any Set-Cookie for the same name already on the response."""
    prefix = f"{key}=".encode("latin-1")
    response.raw_headers[:] = [
        (name, val)
        for name, val in response.raw_headers
        if not (name == b"set-cookie" and val.startswith(prefix))
    ]
    response.set_cookie(key, value, **kwargs)


def _seconds(ttl: Ttl) -> int:
    if isinstance(ttl, timedelta):
        return int(ttl.total_seconds())
    return int(ttl)


class SessionCookieManager:
    def __init__(
        self,
        codec: TokenCodec,
        *,
        domain: Optional[str] = None,
        ttl: Ttl = DEFAULT_SESSION_TTL_SECONDS,
        secure: bool = False,
        httponly: bool = True,
        samesite: str = "lax",
        cookie_name: str = COOKIE_NAME,
    ) -> None:
        self.codec = codec
        self.domain = domain or None
        self.ttl = _seconds(ttl)
        self.secure = secure
        self.httponly = httponly
        self.samesite = samesite
        self.cookie_name = cookie_name

    @classmethod
    def from_settings(cls, codec: TokenCodec, settings: Settings) -> "SessionCookieManager":
        return cls(
            codec,
            domain=settings.domain,
            ttl=settings.session_ttl,
            secure=settings.cookie_secure,
            httponly=settings.cookie_httponly,
            samesite=settings.cookie_samesite,
        )

    def attach(
        self,
        response: Response,
        payload: IdentityPayload,
        ttl: Optional[Ttl] = None,
        *,
        secure: Optional[bool] = None,
        httponly: Optional[bool] = None,
    ) -> str:
        seconds = self.ttl if ttl is None else _seconds(ttl)
        if seconds <= 0:
            raise ValueError("Session TTL must be positive")
        expiry = self.codec.expires_at(self.codec.clock.now() + timedelta(seconds=seconds))
        token = self.codec.issue(payload, expiry)
        set_single_cookie(
            response,
            self.cookie_name,
            token,
            max_age=seconds,
            expires=expiry,
            path=COOKIE_PATH,
            domain=self.domain,
            secure=self.secure if secure is None else secure,
            httponly=self.httponly if httponly is None else httponly,
            samesite=self.samesite,
        )
        return token

    def extract_token(self, cookies: Mapping[str, str]) -> Optional[str]:
        token = (cookies or {}).get(self.cookie_name) or ""
        token = token.strip()
        return token or None

    def clear(self, response: Response) -> None:
        # Path and domain must match attach() or the browser keeps the original.
        set_single_cookie(
            response,
            self.cookie_name,
            "",
            max_age=-1,
            expires=EPOCH,
            path=COOKIE_PATH,
            domain=self.domain,
            secure=self.secure,
            httponly=self.httponly,
            samesite=self.samesite,
        )
