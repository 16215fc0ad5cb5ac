#!/usr/bin/env python3
"""Create an employee account in the Delta Pay database.

Employees cannot register through the API. Use this script (or the
BOOTSTRAP_EMPLOYEE_* settings) to provision them.

Usage:
    python scripts/create_employee.py --username jdoe --full-name "Jane Doe" \\
        --employee-number EMP002
    python scripts/create_employee.py --username jdoe --full-name "Jane Doe" \\
        --employee-number EMP002 --password-stdin < password.txt

The password is prompted for when --password-stdin is not given.
DATABASE_URL and JWT_SECRET_KEY are read from the environment or .env.
"""

import argparse
import asyncio
import getpass
import sys


async def _create(args: argparse.Namespace, password: str) -> int:
    from deltapay.core import settings
    from deltapay.core.database import async_session_maker, engine
    from deltapay.repositories import build_sql_repositories
    from deltapay.services.container import build_services

    services = build_services(settings, repositories=build_sql_repositories(async_session_maker))
    try:
        outcome = await services.credentials.create_employee(
            full_name=args.full_name,
            employee_number=args.employee_number,
            username=args.username,
            password=password,
            ip_address="cli",
        )
    finally:
        await engine.dispose()

    if not outcome.success:
        print(f"ERROR: {outcome.message}")
        return 1

    print(f"Created employee {outcome.value.username} (id {outcome.value.id})")
    return 0


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a Delta Pay employee account")
    parser.add_argument("--username", required=True, help="Login name (3-20 chars)")
    parser.add_argument("--full-name", required=True, help="Employee's full name")
    parser.add_argument("--employee-number", required=True, help="Unique employee number")
    parser.add_argument(
        "--password-stdin",
        action="store_true",
        help="Read the password from stdin instead of prompting",
    )
    args = parser.parse_args()

    if args.password_stdin:
        password = sys.stdin.readline().rstrip("\n")
    else:
        password = getpass.getpass("Password: ")
        if password != getpass.getpass("Confirm password: "):
            print("ERROR: Passwords do not match.")
            return 1

    return asyncio.run(_create(args, password))


if __name__ == "__main__":
    sys.exit(main())
