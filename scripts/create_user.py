#!/usr/bin/env python3
from __future__ import annotations

from getpass import getpass

from authserver.auth.passwords import hash_password
from authserver.auth.users import YamlUserStore, validate_new_user
from authserver.config import load_settings
from authserver.errors import AuthError


def main() -> None:
    settings = load_settings()
    store = YamlUserStore(settings.users_path)

    name = input("Name: ").strip()
    email = input("Email: ").strip()
    pw1 = getpass("Password: ")
    pw2 = getpass("Repeat password: ")

    errors = validate_new_user(name, email, pw1, pw2, store)
    if errors:
        raise SystemExit("\n".join(f"{field}: {msg}" for field, msg in errors.items()))

    try:
        user = store.insert(name, email, hash_password(pw1))
    except AuthError as exc:
        raise SystemExit(str(exc))
    print(f"OK -> {store.path} (id={user.id})")


if __name__ == "__main__":
    main()
