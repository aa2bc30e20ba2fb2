"""
Clear login lockouts from the command line.

Run this script from the project root:
    python reset_login_attempts.py bob@example.com   # one account, every IP
    python reset_login_attempts.py --all             # every account
"""

import argparse
import os
import sys

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

import marketplace.models  # noqa: F401,E402
from marketplace.core import lockout  # noqa: E402
from marketplace.core.database import SessionLocal  # noqa: E402
from marketplace.models.login_attempt import LoginAttempt  # noqa: E402


def reset_login_attempts(email: str = None):
    db = SessionLocal()

    try:
        if email:
            cleared = lockout.clear_attempts(db, email)
            print(f"✓ Cleared {cleared} login attempt records for {lockout.normalize_email(email)}")
            return cleared

        locked = lockout.get_locked_attempts(db)
        print(f"Currently locked pairs: {len(locked)}")
        for record in locked:
            print(f"  - {record.email} from {record.ip_address} ({lockout.get_remaining_lock_time(record)} min left)")

        emails = [row[0] for row in db.query(LoginAttempt.email).distinct().all()]
        cleared = sum(lockout.clear_attempts(db, e) for e in emails)
        print(f"✓ Cleared {cleared} login attempt records for {len(emails)} accounts")
        return cleared

    except Exception as e:
        db.rollback()
        print(f"\n✗ Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Reset login lockouts")
    group = parser.add_mutually_exclusive_group(required=True)
    group.add_argument("email", nargs="?")
    group.add_argument("--all", action="store_true", help="Reset every account")
    args = parser.parse_args()
    reset_login_attempts(None if args.all else args.email)
