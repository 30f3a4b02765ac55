# Copyright (C) 2026 Bernardo Gómez Bey
# SPDX-License-Identifier: AGPL-3.0-or-later

"""Process configuration.

Values come from the environment (``AUTHSERVER_*``). An optional YAML file
named by ``AUTHSERVER_CONFIG`` provides defaults; the environment wins.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml

# Resolved against the working directory by load_settings().
DEFAULT_USERS_PATH = Path("data") / "users.yml"
DEFAULT_SESSION_TTL_SECONDS = 5 * 60 * 60

_TRUE = {"1", "true", "yes", "y", "on"}


def _flag(value: Any, default: bool) -> bool:
    if value is None or value == "":
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in _TRUE


@dataclass(frozen=True)
class Settings:
    secret_key: str
    domain: Optional[str] = None
    session_ttl: int = DEFAULT_SESSION_TTL_SECONDS
    cookie_secure: bool = False
    cookie_httponly: bool = True
    cookie_samesite: str = "lax"
    users_path: Path = DEFAULT_USERS_PATH
    log_level: str = "INFO"
    log_json: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    reload: bool = False

    def __post_init__(self) -> None:
        if not self.secret_key:
            raise RuntimeError("Missing AUTHSERVER_SECRET_KEY (or JWT_SECRET)")
        if self.session_ttl <= 0:
            raise RuntimeError("AUTHSERVER_SESSION_TTL must be a positive number of seconds")

    def current_secret(self) -> bytes:
        return self.secret_key.encode("utf-8")

    def __repr__(self) -> str:
        return f"Settings(domain={self.domain!r}, session_ttl={self.session_ttl}, users_path={str(self.users_path)!r})"


def _read_config_file(path: Path) -> Dict[str, Any]:
    if not path.exists():
        raise RuntimeError(f"Config file not found: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise RuntimeError(f"Config file must contain a mapping: {path}")
    return {str(k).lower(): v for k, v in raw.items()}


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    env = os.environ if environ is None else environ
    file_values: Dict[str, Any] = {}
    config_path = env.get("AUTHSERVER_CONFIG")
    if config_path:
        file_values = _read_config_file(Path(config_path))

    def get(name: str, default: Any = None) -> Any:
        value = env.get(f"AUTHSERVER_{name.upper()}")
        if value is not None and value != "":
            return value
        return file_values.get(name, default)

    secret = get("secret_key") or env.get("JWT_SECRET") or file_values.get("jwt_secret") or ""
    domain = str(get("domain", "") or "").strip() or None

    try:
        session_ttl = int(get("session_ttl", DEFAULT_SESSION_TTL_SECONDS))
        port = int(get("port", 8000))
    except (TypeError, ValueError) as exc:
        raise RuntimeError(f"Invalid numeric setting: {exc}") from exc

    return Settings(
        secret_key=str(secret),
        domain=domain,
        session_ttl=session_ttl,
        cookie_secure=_flag(get("cookie_secure"), False),
        cookie_httponly=_flag(get("cookie_httponly"), True),
        cookie_samesite=str(get("cookie_samesite", "lax")).strip().lower(),
        users_path=Path(str(get("users_path", DEFAULT_USERS_PATH))).resolve(),
        log_level=str(get("log_level", "INFO")).strip().upper(),
        log_json=_flag(get("log_json"), False),
        host=str(get("host", "0.0.0.0")),
        port=port,
        reload=_flag(get("reload"), False),
    )
