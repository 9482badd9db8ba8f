#!/usr/bin/env python3
"""
Issue an access token for local development and manual API testing.

Usage:
  python -m p2p.token_cli u-42 alice@example.com --name "Alice" --role APPROVER
  python -m p2p.token_cli u-1 admin@example.com --role ADMIN --permission MANAGE_USERS

Tokens are signed with the configured JWT key, so they are accepted by any
instance sharing that configuration.
"""

import argparse
from typing import Optional, Sequence

from p2p.services.auth_service import create_access_token
from p2p.services.identity import ROLE_PERMISSIONS, Permission


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Issue a development access token")
    parser.add_argument("user_id", help="Subject claim")
    parser.add_argument("email", help="E-mail claim")
    parser.add_argument("--name", default=None, help="Display name (defaults to the e-mail)")
    parser.add_argument("--role", default=None, choices=sorted(ROLE_PERMISSIONS), help="Role claim")
    parser.add_argument(
        "--permission",
        dest="permissions",
        action="append",
        choices=[p.value for p in Permission],
        help="Explicit permission claim; repeat for several",
    )
    return parser


def issue_token(argv: Optional[Sequence[str]] = None) -> str:
    args = build_parser().parse_args(argv)
    return create_access_token(
        args.user_id,
        args.email,
        name=args.name,
        role=args.role,
        permissions=args.permissions,
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    print(issue_token(argv))


if __name__ == "__main__":
    main()
