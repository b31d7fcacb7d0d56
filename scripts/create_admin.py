#!/usr/bin/env python3
"""
Create an admin account for the newsletter publishing area.

Run:  python scripts/create_admin.py USERNAME [--password PASSWORD]

Prompts for the password when --password is not given.

Exit codes:
  0 - Account created
  1 - Username already taken or passwords did not match
  2 - Fatal error (database connection, imports)
"""

import argparse
import getpass
import sys
from pathlib import Path

# Add project root to path
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

try:
    from sqlalchemy.exc import IntegrityError, SQLAlchemyError

    from newsletter.concurrency import BlockingExecutor
    from newsletter.config import settings
    from newsletter.database import create_session_factory
    from newsletter.services.authentication import CredentialVerifier
except ImportError as e:
    print(f"ERROR: Failed to import required modules: {e}")
    print("Make sure you're running from the project root and dependencies are installed.")
    sys.exit(2)


def read_password() -> str | None:
    password = getpass.getpass("Password: ")
    if password != getpass.getpass("Repeat password: "):
        print("Passwords do not match.")
        return None
    return password


def main() -> int:
    parser = argparse.ArgumentParser(description="Create a newsletter admin account")
    parser.add_argument("username")
    parser.add_argument("--password", help="Password (prompted when omitted)")
    args = parser.parse_args()

    password = args.password or read_password()
    if not password:
        return 1

    executor = BlockingExecutor(max_workers=1)
    verifier = CredentialVerifier(create_session_factory(settings), executor)
    try:
        user_id = verifier.create_user(args.username, password)
    except IntegrityError:
        print(f"Username '{args.username}' is already taken.")
        return 1
    except SQLAlchemyError as e:
        print(f"ERROR: Database error: {e}")
        return 2
    finally:
        executor.shutdown()

    print(f"Created admin '{args.username}' ({user_id})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
