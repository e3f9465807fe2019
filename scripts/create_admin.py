#!/usr/bin/env python3
"""Seed a user directly in the store (the first admin cannot be registered through the web flow)."""
from __future__ import annotations

from wxstation.auth.challenge import is_valid_email
from wxstation.infra.kv_store import build_store
from wxstation.infra.user_repo import user_add, user_exists


def main() -> None:
    store = build_store()

    email = input("Email: ").strip()
    if not is_valid_email(email):
        raise SystemExit("Invalid email")
    if user_exists(store, email):
        raise SystemExit(f"{email} is already registered")

    admin_in = input("Admin? [Y/n]: ").strip().lower()
    admin = (admin_in != "n")

    user_add(store, email, admin=admin)
    print(f"OK -> user:{email}{' (admin)' if admin else ''}")


if __name__ == "__main__":
    main()
