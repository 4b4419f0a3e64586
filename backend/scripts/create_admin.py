#!/usr/bin/env python3
"""
Operator-only script (NOT an API endpoint):
Create an administrator account so the admin-only /graph and /user routes
can be used on a fresh deployment.

Usage:
    python backend/scripts/create_admin.py --email admin@example.com --firstname Ada --lastname Lovelace

The password is read from ADMIN_PASSWORD, or prompted for when unset.
"""
import argparse
import getpass
import os
from pathlib import Path

# Add parent directory to path for imports
import sys
sys.path.insert(0, str(Path(__file__).parent.parent))

from pydantic import ValidationError

from db_postgres import init_postgres_db
from errors import GraphServiceError
from models import UserCreateRequest, UserRole
from services_user import create_user


def _read_password() -> str:
    password = os.getenv("ADMIN_PASSWORD")
    if password:
        return password
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Confirm password: "):
        raise SystemExit("Passwords do not match")
    return password


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Create an administrator account")
    parser.add_argument("--email", required=True, help="Login email")
    parser.add_argument("--firstname", required=True)
    parser.add_argument("--lastname", required=True)
    args = parser.parse_args(argv)

    password = _read_password()
    try:
        request = UserCreateRequest(
            firstname=args.firstname,
            lastname=args.lastname,
            email=args.email,
            password=password,
            confirm_password=password,
            role=UserRole.ADMIN,
        )
    except ValidationError as e:
        print(f"[Create Admin] ERROR: {e}")
        return 1

    init_postgres_db()
    try:
        user = create_user(
            request.firstname, request.lastname, request.email, request.password, role=request.role
        )
    except GraphServiceError as e:
        print(f"[Create Admin] ERROR: {e.detail}")
        return 1

    print(f"[Create Admin] Created admin {user.email} ({user.id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
