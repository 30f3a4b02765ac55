# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

from __future__ import annotations

import os
import re
import threading
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Protocol, Tuple

import yaml

from authserver.auth.tokens import UserId
from authserver.errors import ConstraintError, NotFound, StoreUnavailable
from authserver.logging import get_logger

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[a-z0-9._%+\-]+@[a-z0-9.\-]+\.[a-z]{2,4}$")


@dataclass(frozen=True)
class UserRecord:
    id: int
    name: str
    email: str
    password_hash: str


class UserStore(Protocol):
    def find_by_email(self, email: str) -> UserRecord: ...

    def find_by_id(self, user_id: UserId) -> UserRecord: ...

    def insert(self, name: str, email: str, password_hash: str) -> UserRecord: ...

    def exists_by_email(self, email: str) -> bool: ...


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def _coerce_id(user_id: UserId) -> int:
    try:
        return int(user_id)
    except (TypeError, ValueError):
        raise NotFound(f"No user with id {user_id!r}") from None


class MemoryUserStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._by_id: Dict[int, UserRecord] = {}

    def find_by_email(self, email: str) -> UserRecord:
        e = normalize_email(email)
        for u in list(self._by_id.values()):
            if u.email == e:
                return u
        raise NotFound(f"No user with email {e!r}")

    def find_by_id(self, user_id: UserId) -> UserRecord:
        u = self._by_id.get(_coerce_id(user_id))
        if u is None:
            raise NotFound(f"No user with id {user_id!r}")
        return u

    def exists_by_email(self, email: str) -> bool:
        try:
            self.find_by_email(email)
        except NotFound:
            return False
        return True

    def insert(self, name: str, email: str, password_hash: str) -> UserRecord:
        e = normalize_email(email)
        with self._lock:
            if any(u.email == e for u in self._by_id.values()):
                raise ConstraintError("email", "Already taken")
            uid = max(self._by_id, default=0) + 1
            record = UserRecord(id=uid, name=name.strip(), email=e, password_hash=password_hash)
            self._by_id[uid] = record
        return record

    def delete(self, user_id: UserId) -> bool:
        with self._lock:
            return self._by_id.pop(_coerce_id(user_id), None) is not None


class YamlUserStore:
    """Users kept in a YAML file::

        version: 1
        users:
          1: {name: Ana, email: ana@example.com, password_hash: "$argon2id$..."}

    Reads are cached on the file's mtime; writes are serialised and atomic.
    """

    def __init__(self, path: Path) -> None:
        self.path = Path(path)
        self._write_lock = threading.Lock()
        self._cache: Tuple[float, Dict[int, UserRecord]] = (0.0, {})

    def _load(self) -> Dict[int, UserRecord]:
        if not self.path.exists():
            return {}
        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as exc:
            raise StoreUnavailable(f"Cannot read {self.path}: {exc}") from exc
        if not isinstance(raw, dict):
            raise StoreUnavailable(f"Unexpected layout in {self.path}: top level must be a mapping")
        users = raw.get("users") or {}
        if not isinstance(users, dict):
            raise StoreUnavailable(f"Unexpected layout in {self.path}: users must be a mapping")
        out: Dict[int, UserRecord] = {}
        for uid, udata in users.items():
            if not isinstance(udata, dict):
                continue
            try:
                key = int(uid)
            except (TypeError, ValueError):
                logger.warning("users_file_bad_id", path=str(self.path), id=str(uid))
                continue
            email = normalize_email(str(udata.get("email") or ""))
            if not email:
                continue
            out[key] = UserRecord(
                id=key,
                name=str(udata.get("name") or "").strip(),
                email=email,
                password_hash=str(udata.get("password_hash") or "").strip(),
            )
        return out

    def _users(self) -> Dict[int, UserRecord]:
        try:
            mtime = self.path.stat().st_mtime if self.path.exists() else 0.0
        except OSError as exc:
            raise StoreUnavailable(f"Cannot stat {self.path}: {exc}") from exc

        cached_mtime, cached_users = self._cache
        if mtime and mtime == cached_mtime:
            return cached_users

        users = self._load()
        self._cache = (mtime, users)
        return users

    def find_by_email(self, email: str) -> UserRecord:
        e = normalize_email(email)
        for u in self._users().values():
            if u.email == e:
                return u
        raise NotFound(f"No user with email {e!r}")

    def find_by_id(self, user_id: UserId) -> UserRecord:
        u = self._users().get(_coerce_id(user_id))
        if u is None:
            raise NotFound(f"No user with id {user_id!r}")
        return u

    def exists_by_email(self, email: str) -> bool:
        try:
            self.find_by_email(email)
        except NotFound:
            return False
        return True

    def insert(self, name: str, email: str, password_hash: str) -> UserRecord:
        e = normalize_email(email)
        with self._write_lock:
            users = self._load()
            if any(u.email == e for u in users.values()):
                raise ConstraintError("email", "Already taken")
            uid = max(users, default=0) + 1
            record = UserRecord(id=uid, name=name.strip(), email=e, password_hash=password_hash)
            users[uid] = record
            self._write(users)
        logger.info("user_created", user_id=uid)
        return record

    def _write(self, users: Dict[int, UserRecord]) -> None:
        raw = {
            "version": 1,
            "users": {
                uid: {"name": u.name, "email": u.email, "password_hash": u.password_hash}
                for uid, u in sorted(users.items())
            },
        }
        tmp = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(yaml.safe_dump(raw, sort_keys=False, allow_unicode=True), encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as exc:
            raise StoreUnavailable(f"Cannot write {self.path}: {exc}") from exc
        self._cache = (0.0, {})


def validate_new_user(
    name: str,
    email: str,
    password: str,
    password_confirmation: str,
    store: UserStore,
) -> Dict[str, str]:
    """Field -> message for everything wrong with a signup form. Empty means valid."""
    errors: Dict[str, str] = {}
    e = normalize_email(email)

    if not (name or "").strip():
        errors["name"] = "Can't be blank"

    if not e:
        errors["email"] = "Can't be blank"
    elif not EMAIL_RE.match(e):
        errors["email"] = "Is invalid"
    elif store.exists_by_email(e):
        errors["email"] = "Already taken"

    if not password:
        errors["password"] = "Can't be blank"

    if not password_confirmation:
        errors["password_confirmation"] = "Can't be blank"
    elif password != password_confirmation:
        errors["password_confirmation"] = "Must match password"

    return errors
