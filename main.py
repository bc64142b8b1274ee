#!/usr/bin/env python3
"""
AssetDesk -- administrative command line for the user store.

Usage:
  python main.py seed
  python main.py create-user --username admin --email admin@example.com --role Admin \
      --first-name System --last-name Administrator
  python main.py unlock alice@example.com
  python main.py import-users users.json

The database is the one configured by DATABASE_URL (see core/config.py).

import-users reads a JSON list of objects with username, email,
hashed_password (bcrypt), first_name, last_name and optionally role,
permissions, department and position. It is meant for migrating accounts
whose passwords were hashed by another system; plaintext passwords are
rejected.
"""

import argparse
import getpass
import json
import sys
from pathlib import Path

from auth.errors import AuthError
from auth.models import User
from auth.store import UserStore
from auth.users import UserManager
from core.config import get_settings

# Demo accounts for a fresh development database.
_SAMPLE_USERS = [
    {
        "username": "admin",
        "email": "admin@assetmanagement.com",
        "password": "admin123",
        "first_name": "System",
        "last_name": "Administrator",
        "role": "Admin",
        "department": "IT",
        "position": "System Administrator",
    },
    {
        "username": "manager1",
        "email": "manager@assetmanagement.com",
        "password": "manager123",
        "first_name": "John",
        "last_name": "Manager",
        "role": "Manager",
        "department": "Operations",
        "position": "Operations Manager",
    },
    {
        "username": "employee1",
        "email": "employee@assetmanagement.com",
        "password": "employee123",
        "first_name": "Jane",
        "last_name": "Employee",
        "role": "Employee",
        "department": "HR",
        "position": "HR Specialist",
    },
]

_IMPORT_FIELDS = (
    "username",
    "email",
    "hashed_password",
    "first_name",
    "last_name",
    "role",
    "permissions",
    "department",
    "position",
)

_IMPORT_REQUIRED = ("username", "email", "hashed_password", "first_name", "last_name")
_IMPORT_OPTIONAL_STR = ("role", "department", "position")


def _record_problems(rec: object) -> list[str]:
    """Return what is wrong with one import record's shape, if anything."""
    if not isinstance(rec, dict):
        return ["record is not a JSON object"]
    problems = []
    for key in _IMPORT_REQUIRED:
        if key not in rec:
            problems.append(f"{key}: missing")
        elif not isinstance(rec[key], str):
            problems.append(f"{key}: must be a string")
    for key in _IMPORT_OPTIONAL_STR:
        if rec.get(key) is not None and not isinstance(rec[key], str):
            problems.append(f"{key}: must be a string")
    perms = rec.get("permissions")
    if perms is not None and not (isinstance(perms, list) and all(isinstance(p, str) for p in perms)):
        problems.append("permissions: must be a list of strings")
    return problems


def _print_errors(exc: AuthError) -> None:
    print(f"  [!] {exc.message}")
    for err in exc.errors:
        print(f"      {err.field}: {err.message}")


def cmd_seed(store: UserStore, args: argparse.Namespace) -> int:
    created = 0
    for data in _SAMPLE_USERS:
        if store.find_by_email(data["email"]) or store.find_by_username(data["username"]):
            print(f"  {data['username']} already exists, skipped")
            continue
        store.create(User(**data))
        created += 1
        print(f"  Created {data['username']} ({data['role']}) -- password: {data['password']}")
    print(f"\n  {created} user(s) created. Change these passwords before going anywhere near production.")
    return 0


def cmd_create_user(store: UserStore, args: argparse.Namespace) -> int:
    password = args.password or getpass.getpass("Password: ")
    user = store.create(
        User(
            username=args.username,
            email=args.email,
            password=password,
            first_name=args.first_name,
            last_name=args.last_name,
            role=args.role,
            department=args.department,
            position=args.position,
        )
    )
    print(f"  Created {user.username} <{user.email}> (role={user.role}, id={user.id})")
    return 0


def cmd_unlock(store: UserStore, args: argparse.Namespace) -> int:
    user = store.find_by_email(args.email)
    if user is None:
        print(f"  [!] No user with email '{args.email}'.")
        return 1
    UserManager(store).unlock(user.id)
    print(f"  Unlocked {user.username}")
    return 0


def cmd_import_users(store: UserStore, args: argparse.Namespace) -> int:
    file_path = Path(args.file).resolve()
    if not file_path.is_file():
        print(f"  [!] '{args.file}' is not a readable file.")
        return 1
    try:
        records = json.loads(file_path.read_text())
    except (OSError, json.JSONDecodeError) as e:
        print(f"  [!] Could not read '{args.file}': {e}")
        return 1
    if not isinstance(records, list):
        print("  [!] Expected a JSON list of user objects.")
        return 1
    bad = False
    for index, rec in enumerate(records):
        for problem in _record_problems(rec):
            print(f"  [!] Record {index}: {problem}")
            bad = True
    if bad:
        return 1
    users = [User(**{k: rec[k] for k in _IMPORT_FIELDS if rec.get(k) is not None}) for rec in records]
    count = store.import_prehashed_users(users)
    print(f"  Imported {count} user(s)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="assetdesk", description="AssetDesk user administration")
    sub = parser.add_subparsers(dest="command", required=True)

    seed = sub.add_parser("seed", help="create demo Admin/Manager/Employee accounts")
    seed.set_defaults(func=cmd_seed)

    create = sub.add_parser("create-user", help="create one account")
    create.add_argument("--username", required=True)
    create.add_argument("--email", required=True)
    create.add_argument("--password", help="prompted for when omitted")
    create.add_argument("--first-name", required=True)
    create.add_argument("--last-name", required=True)
    create.add_argument("--role", default="Employee", choices=["Admin", "Manager", "Employee"])
    create.add_argument("--department")
    create.add_argument("--position")
    create.set_defaults(func=cmd_create_user)

    unlock = sub.add_parser("unlock", help="clear failed logins and any lock for an account")
    unlock.add_argument("email")
    unlock.set_defaults(func=cmd_unlock)

    imp = sub.add_parser("import-users", help="bulk import accounts with pre-hashed passwords")
    imp.add_argument("file")
    imp.set_defaults(func=cmd_import_users)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    store = UserStore(get_settings().database_url)
    try:
        return args.func(store, args)
    except AuthError as exc:
        _print_errors(exc)
        return 1
    finally:
        store.close()


if __name__ == "__main__":
    sys.exit(main())
