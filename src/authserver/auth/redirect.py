# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Remember where the user was going across a login detour.

The destination arrives as ``?redirect_to=`` and is parked in the
``redirectTo`` cookie for an hour so it survives the form round trip. It is
one-shot: every login decision clears it.
"""

from __future__ import annotations

from typing import Mapping, Optional
from urllib.parse import urlsplit

from fastapi import Response
from fastapi.responses import RedirectResponse

from authserver.auth.session import COOKIE_PATH, EPOCH, set_single_cookie

QUERY_PARAM = "redirect_to"
COOKIE_NAME = "redirectTo"
COOKIE_MAX_AGE_SECONDS = 60 * 60


def is_safe_destination(url: str, *, allowed_host: Optional[str] = None) -> bool:
    if not url or len(url) > 2048:
        return False
    if "\\" in url or any(ord(ch) < 32 or ord(ch) == 127 for ch in url):
        return False
    parts = urlsplit(url)
    if not parts.scheme and not parts.netloc:
        return url.startswith("/") and not url.startswith("//")
    if parts.scheme not in {"http", "https"} or not allowed_host:
        return False
    host = (parts.hostname or "").lower()
    return host == allowed_host.lstrip(".").lower()


class RedirectContinuation:
    def __init__(self, *, allowed_host: Optional[str] = None, secure: bool = False) -> None:
        self.allowed_host = allowed_host
        self.secure = secure

    def _clean(self, value: Optional[str]) -> Optional[str]:
        value = (value or "").strip()
        if value and is_safe_destination(value, allowed_host=self.allowed_host):
            return value
        return None

    def capture(self, query_params: Mapping[str, str], response: Response) -> Optional[str]:
        destination = self._clean(query_params.get(QUERY_PARAM))
        if destination:
            set_single_cookie(
                response,
                COOKIE_NAME,
                destination,
                max_age=COOKIE_MAX_AGE_SECONDS,
                path=COOKIE_PATH,
                secure=self.secure,
                httponly=True,
                samesite="lax",
            )
        return destination

    def resolve(self, query_params: Mapping[str, str], cookies: Mapping[str, str]) -> Optional[str]:
        return self._clean(query_params.get(QUERY_PARAM)) or self._clean((cookies or {}).get(COOKIE_NAME))

    def forget(self, response: Response) -> None:
        set_single_cookie(
            response,
            COOKIE_NAME,
            "",
            max_age=-1,
            expires=EPOCH,
            path=COOKIE_PATH,
            secure=self.secure,
            httponly=True,
            samesite="lax",
        )

    def consume_and_redirect(
        self,
        query_params: Mapping[str, str],
        cookies: Mapping[str, str],
        default: str = "/",
    ) -> RedirectResponse:
        destination = self.resolve(query_params, cookies) or default
        response = RedirectResponse(url=destination, status_code=303)
        self.forget(response)
        return response
