"""
Create the first superadmin account, or promote an existing user.

Run this script from the project root:
    python create_admin_user.py admin@example.com
"""

import argparse
import getpass
import os
import sys

# Add project root to Python path
sys.path.append(os.path.dirname(os.path.abspath(__file__)))

import marketplace.models  # noqa: F401,E402
from marketplace.core.database import SessionLocal  # noqa: E402
from marketplace.core.security import get_password_hash  # noqa: E402
from marketplace.models.user import User, UserRole, UserStatus  # noqa: E402


def create_admin_user(email: str, role: UserRole = UserRole.SUPERADMIN):
    db = SessionLocal()
    email = email.strip().lower()

    try:
        user = db.query(User).filter(User.email == email).first()

        if user:
            print(f"User {email} exists with role {user.role.value}")
            user.role = role
            user.status = UserStatus.ACTIVE
            user.is_active = True
            user.is_verified = True
            user.is_guest = False
            db.commit()
            print(f"✓ Promoted {email} to {role.value}")
            return

        password = getpass.getpass("Password: ")
        if len(password) < 8:
            print("✗ Password must be at least 8 characters")
            return
        if password != getpass.getpass("Confirm password: "):
            print("✗ Passwords do not match")
            return

        db.add(User(
            email=email,
            hashed_password=get_password_hash(password),
            first_name="Admin",
            role=role,
            status=UserStatus.ACTIVE,
            is_active=True,
            is_verified=True,
        ))
        db.commit()
        print(f"✓ Created {role.value} account {email}")

    except Exception as e:
        db.rollback()
        print(f"\n✗ Error: {e}")
        raise
    finally:
        db.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create or promote an admin account")
    parser.add_argument("email")
    parser.add_argument(
        "--role",
        choices=[r.value for r in UserRole if r.is_admin],
        default=UserRole.SUPERADMIN.value
    )
    args = parser.parse_args()
    create_admin_user(args.email, UserRole(args.role))
