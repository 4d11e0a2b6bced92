"""
Create a user (e.g. first admin). Run from project root:
  python -m workload_tracker.scripts.create_user USERNAME PASSWORD NAME [role]
Example:
  python -m workload_tracker.scripts.create_user admin your-secure-password "Administrator" Admin
"""
import argparse
import sys

from workload_tracker.core.config import get_settings
from workload_tracker.core.database import Database
from workload_tracker.core.errors import AppError
from workload_tracker.core.logging_config import configure_logging
from workload_tracker.models import ROLES
from workload_tracker.repositories.users import UserRepository
from workload_tracker.schemas.users import PASSWORD_MAX_LEN, PASSWORD_MIN_LEN


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="Create a Workload Tracker user (no registration UI).")
    parser.add_argument("username", help="Username (letters, digits, '_' and '.')")
    parser.add_argument("password", help=f"Password ({PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} chars)")
    parser.add_argument("name", help="Full name")
    parser.add_argument("role", nargs="?", default="User", choices=list(ROLES))
    args = parser.parse_args(argv)

    username = args.username.strip()
    if len(username) < 3 or len(username) > 50:
        print("Username must be 3-50 characters.", file=sys.stderr)
        return 1
    if len(args.password) < PASSWORD_MIN_LEN or len(args.password) > PASSWORD_MAX_LEN:
        print(f"Password must be {PASSWORD_MIN_LEN}-{PASSWORD_MAX_LEN} characters.", file=sys.stderr)
        return 1

    settings = get_settings()
    configure_logging(settings.LOG_LEVEL)
    db = Database(settings)
    try:
        db.initialize()
        users = UserRepository(db)
        if users.get_by_username(username):
            print(f"User '{username}' already exists.", file=sys.stderr)
            return 1
        users.create(username=username, password=args.password, name=args.name, role=args.role)
        print(f"Created user '{username}' with role '{args.role}' ({db.backend}).")
        return 0
    except AppError as e:
        print(f"Could not create user: {e.message}", file=sys.stderr)
        return 1
    finally:
        db.close()


if __name__ == "__main__":
    sys.exit(main())
