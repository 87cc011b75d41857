#!/usr/bin/env python
"""Seed the development database with a dev user.

Creates (or refreshes) a fixed dev user so a locally minted token has a
users row, and optionally resets that user's free-usage counter.

Constraints:
- Refuses to run in staging or prod (C3CHAT_ENV check)
- Idempotent: re-running only refreshes the email / resets the counter
- Never runs automatically (manual invocation only)

Usage:
    cd python && DATABASE_URL=... python ../scripts/seed_dev.py [--reset-usage]
"""

import argparse
import os
import sys
from uuid import UUID

DEV_USER_ID = UUID("00000000-0000-4000-8000-000000000001")
DEV_USER_EMAIL = "dev@c3chat.local"


def main():
    parser = argparse.ArgumentParser(description=__doc__.splitlines()[0])
    parser.add_argument(
        "--reset-usage",
        action="store_true",
        help="reset the dev user's free-usage counter to 0",
    )
    args = parser.parse_args()

    # 1. Environment check (hard fail in staging/prod)
    c3chat_env = os.getenv("C3CHAT_ENV", "local")
    if c3chat_env not in ("local", "test"):
        print(f"ERROR: seed_dev.py refuses to run in C3CHAT_ENV={c3chat_env}")
        sys.exit(1)

    # 2. Check DATABASE_URL
    database_url = os.getenv("DATABASE_URL")
    if not database_url:
        print("ERROR: DATABASE_URL environment variable must be set")
        sys.exit(1)

    from c3chat.db.session import get_session_factory
    from c3chat.services.bootstrap import ensure_user
    from c3chat.services.usage import reset_free_usage

    # 3. Idempotent seeding
    with get_session_factory()() as db:
        user = ensure_user(db, DEV_USER_ID, DEV_USER_EMAIL)
        if args.reset_usage:
            reset_free_usage(db, DEV_USER_ID)
            db.refresh(user)

        # 4. Report
        db_display = database_url.split("@")[1] if "@" in database_url else database_url
        print(f"Database: {db_display}")
        print(f"C3CHAT_ENV: {c3chat_env}")
        print()
        print(f"User: {user.id} <{user.email}>")
        print(f"Free usage: {user.free_usage_count}")


if __name__ == "__main__":
    main()
