#!/usr/bin/env python3
"""
Gatekeeper -- administrative command line.

Usage:
  python main.py create-admin --email admin@example.com --name "Site Admin" --password 'S3cret!pass'
  python main.py create-admin --email admin@example.com --name "Site Admin" --password-stdin < pw.txt
  python main.py decode-token eyJhbGciOi...
  python main.py decode-token eyJhbGciOi... --refresh

Environment variables (see core/config.py):
  DATABASE_URL          SQLAlchemy URL of the user store.
  ACCESS_TOKEN_SECRET   Secret used to verify access tokens.
  REFRESH_TOKEN_SECRET  Secret used to verify refresh tokens (--refresh).
  DEBUG                 true to auto-generate missing secrets (local only).
"""

import argparse
import json
import sys

from auth.errors import AuthCoreError, TokenVerificationError
from auth.models import Role, TokenKind, User
from auth.passwords import PasswordHasher
from auth.schemas import RegisterInput, validate_input
from auth.store import UserStore
from auth.tokens import TokenIssuer
from core.config import TokenConfig, get_settings


def create_admin(store: UserStore, hasher: PasswordHasher, email: str, name: str, password: str, handle=None) -> str:
    """Create an admin account, or promote and re-password an existing one.

    Input goes through the same RegisterInput validation as self-registration.
    Returns "created" or "promoted".
    """
    data = validate_input(
        RegisterInput,
        {"email": email, "displayName": name, "password": password, "userName": handle},
    )
    existing = store.find_user_by_email_or_handle(data.email)
    if existing is not None:
        store.update_user(existing.id, role=Role.ADMIN, hashed_password=hasher.hash(data.password))
        return "promoted"
    store.create_user(
        User(
            email=data.email,
            display_name=data.display_name,
            handle=data.handle,
            hashed_password=hasher.hash(data.password),
            role=Role.ADMIN,
        )
    )
    return "created"


def decode_token(issuer: TokenIssuer, token: str, refresh: bool = False) -> dict:
    """Verify token with the configured secret and return its claims."""
    return issuer.verify(token, TokenKind.REFRESH if refresh else TokenKind.ACCESS)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(
        prog="gatekeeper",
        description="Administrative tasks for the Gatekeeper authentication service.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    sub = parser.add_subparsers(dest="command", metavar="COMMAND")

    admin = sub.add_parser("create-admin", help="Create an admin user or promote an existing one")
    admin.add_argument("--email", required=True)
    admin.add_argument("--name", required=True, help="Display name")
    admin.add_argument("--handle", default=None, help="Optional login user name")
    pw = admin.add_mutually_exclusive_group(required=True)
    pw.add_argument("--password", help="Password (visible in shell history; prefer --password-stdin)")
    pw.add_argument("--password-stdin", action="store_true", help="Read the password from stdin")

    decode = sub.add_parser("decode-token", help="Verify a token and print its claims")
    decode.add_argument("token")
    decode.add_argument("--refresh", action="store_true", help="Verify as a refresh token")

    args = parser.parse_args(argv)
    if args.command is None:
        parser.print_help()
        return 1

    settings = get_settings()

    if args.command == "create-admin":
        password = sys.stdin.readline().rstrip("\n") if args.password_stdin else args.password
        store = UserStore(settings.database_url)
        try:
            status = create_admin(
                store,
                PasswordHasher(settings.password_hash_rounds),
                args.email,
                args.name,
                password,
                handle=args.handle,
            )
        except AuthCoreError as exc:
            print(f"  [!] {exc.message}", file=sys.stderr)
            for err in exc.errors:
                print(f"      - {err}", file=sys.stderr)
            return 2
        finally:
            store.close()
        print(f"  Admin {args.email.strip().lower()} {status}.")
        return 0

    issuer = TokenIssuer(TokenConfig.from_settings(settings))
    try:
        claims = decode_token(issuer, args.token, refresh=args.refresh)
    except TokenVerificationError as exc:
        print(f"  [!] Token rejected ({exc.reason}).", file=sys.stderr)
        return 2
    print(json.dumps(claims, indent=2, sort_keys=True))
    return 0


if __name__ == "__main__":
    sys.exit(main())
