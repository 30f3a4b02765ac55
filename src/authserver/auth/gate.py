# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

from typing import Mapping, Optional

from authserver.auth.passwords import CredentialVerifier
from authserver.auth.session import SessionCookieManager
from authserver.auth.tokens import IdentityPayload
from authserver.auth.users import UserRecord, UserStore
from authserver.errors import NotFound, StoreError, TokenError, VerificationFailure
from authserver.logging import get_logger

logger = get_logger(__name__)


def payload_for(user: UserRecord) -> IdentityPayload:
    return IdentityPayload(id=user.id, name=user.name or None, email=user.email or None)


class AuthGate:
    """Answers "who is this request?" for handlers.

    Every failure (missing cookie, bad token, deleted user, store outage)
    comes back as ``False``/``None``. The reason is logged, never returned.
    """

    def __init__(
        self,
        sessions: SessionCookieManager,
        store: UserStore,
        verifier: Optional[CredentialVerifier] = None,
    ) -> None:
        self.sessions = sessions
        self.codec = sessions.codec
        self.store = store
        self.verifier = verifier or CredentialVerifier()
        self._dummy_hash: Optional[str] = None

    def _payload(self, cookies: Mapping[str, str]) -> Optional[IdentityPayload]:
        token = self.sessions.extract_token(cookies)
        if token is None:
            return None
        try:
            return self.codec.verify(token)
        except TokenError as exc:
            logger.info("session_token_rejected", kind=exc.kind)
            return None

    def is_authenticated(self, cookies: Mapping[str, str]) -> bool:
        return self._payload(cookies) is not None

    def current_user(self, cookies: Mapping[str, str]) -> Optional[UserRecord]:
        payload = self._payload(cookies)
        if payload is None:
            return None
        try:
            return self.store.find_by_id(payload.id)
        except NotFound:
            logger.info("session_user_missing", user_id=payload.id)
            return None
        except (StoreError, OSError, TimeoutError) as exc:
            logger.warning("session_user_lookup_failed", user_id=payload.id, error=str(exc))
            return None
        except Exception as exc:
            logger.warning(
                "session_user_lookup_failed",
                user_id=payload.id,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            return None

    def authenticate(self, email: str, password: str) -> UserRecord:
        """Return the user owning these credentials or raise VerificationFailure.

        Unknown email and wrong password are indistinguishable to the caller.
        Store outages propagate as StoreError.
        """
        try:
            user = self.store.find_by_email(email)
        except NotFound:
            self.verifier.verify(password or "x", self._timing_hash())
            raise VerificationFailure("Invalid credentials")
        if not self.verifier.verify(password, user.password_hash):
            raise VerificationFailure("Invalid credentials")
        return user

    def _timing_hash(self) -> str:
        if self._dummy_hash is None:
            self._dummy_hash = self.verifier.hash("authserver-timing-equaliser")
        return self._dummy_hash
