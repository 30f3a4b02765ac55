# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Optional
from urllib.parse import urlencode

from fastapi import HTTPException, Request

from authserver.auth.gate import AuthGate
from authserver.auth.redirect import QUERY_PARAM
from authserver.auth.users import UserRecord

LOGIN_PATH = "/sessions/new"


def get_gate(request: Request) -> AuthGate:
    return request.app.state.gate


def current_user_optional(request: Request) -> Optional[UserRecord]:
    u = getattr(request.state, "user", None)
    if u is not None:
        return u
    return get_gate(request).current_user(request.cookies)


def require_user(request: Request) -> UserRecord:
    u = current_user_optional(request)
    if u:
        return u
    next_url = str(request.url.path)
    if request.url.query:
        next_url += "?" + request.url.query
    loc = f"{LOGIN_PATH}?{urlencode({QUERY_PARAM: next_url})}"
    raise HTTPException(status_code=303, headers={"Location": loc})
