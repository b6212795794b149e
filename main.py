#!/usr/bin/env python3
"""
AssetDesk operator CLI.

Usage:
  python main.py create-admin
  python main.py create-admin --username admin --email admin@example.com --full-name "System Administrator"
  python main.py purge-sessions

Environment variables:
  DATABASE_URL        SQLAlchemy URL of the user/session database.
  JWT_SECRET          Access-token signing secret (required unless DEBUG=true).
  JWT_REFRESH_SECRET  Refresh-token signing secret (required unless DEBUG=true).
"""

import argparse
import getpass
import sys

from sqlalchemy.exc import IntegrityError

from auth.ledger import RefreshTokenLedger
from auth.models import Role, User
from auth.passwords import hash_password
from auth.store import UserStore
from core.config import get_settings

_MIN_PASSWORD_LEN = 8


def _prompt_password() -> str:
    """Read the new password twice from the terminal. Never echoed, never logged."""
    while True:
        first = getpass.getpass("  Password: ")
        if len(first) < _MIN_PASSWORD_LEN:
            print(f"  [!] Password must be at least {_MIN_PASSWORD_LEN} characters.")
            continue
        if getpass.getpass("  Confirm password: ") != first:
            print("  [!] Passwords do not match.")
            continue
        return first


def create_admin(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        if store.get_by_username_or_email(args.username) or store.get_by_username_or_email(args.email.lower()):
            print(f"  Admin user '{args.username}' or email '{args.email}' already exists.")
            return 0
        password = _prompt_password()
        user = User(
            username=args.username,
            email=args.email.lower(),
            role=Role.admin,
            password_hash=hash_password(password, rounds=settings.bcrypt_rounds),
            full_name=args.full_name,
        )
        try:
            user_id = store.create_user(user)
        except IntegrityError:
            print(f"  [!] A user named '{args.username}' or with email '{args.email}' already exists.")
            return 1
        print(f"  Admin user created (user_id={user_id}, username={args.username}).")
        return 0
    finally:
        store.close()


def purge_sessions(args: argparse.Namespace) -> int:
    settings = get_settings()
    store = UserStore(settings.database_url)
    try:
        removed = RefreshTokenLedger(store.engine, rounds=settings.bcrypt_rounds).purge_expired()
        print(f"  Removed {removed} expired refresh token record(s).")
        return 0
    finally:
        store.close()


def main() -> None:
    parser = argparse.ArgumentParser(
        prog="assetdesk",
        description="AssetDesk operator commands.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    admin = subparsers.add_parser("create-admin", help="Create an Admin account (prompts for password)")
    admin.add_argument("--username", default="admin")
    admin.add_argument("--email", default="admin@example.com")
    admin.add_argument("--full-name", default="System Administrator")
    admin.set_defaults(func=create_admin)

    purge = subparsers.add_parser("purge-sessions", help="Delete expired refresh token records")
    purge.set_defaults(func=purge_sessions)

    args = parser.parse_args()
    sys.exit(args.func(args))


if __name__ == "__main__":
    main()
