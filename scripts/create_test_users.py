"""
Create a demo renter, owner and admin (admins cannot self-register through the API).

Run from project root:
  python scripts/create_test_users.py

Credentials are printed at the end.
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from lendit.database import SessionLocal
import lendit.models  # noqa: F401  (resolve relationships)
from lendit.models.user import User, UserRole
from lendit.services.auth import get_password_hash

# Default credentials (change if you want)
PASSWORD = "Password123!"
DEMO_USERS = (
    ("renter@lendit.demo", UserRole.RENTER, "Test", "Renter"),
    ("owner@lendit.demo", UserRole.OWNER, "Test", "Owner"),
    ("admin@lendit.demo", UserRole.ADMIN, "Test", "Admin"),
)


def main():
    db = SessionLocal()
    try:
        for email, role, first_name, last_name in DEMO_USERS:
            if db.query(User).filter(User.email == email).first():
                print(f"{role.value.title()} already exists: {email}")
                continue
            db.add(User(
                email=email,
                hashed_password=get_password_hash(PASSWORD),
                role=role,
                first_name=first_name,
                last_name=last_name,
            ))
            print(f"Created {role.value.lower()}: {email}")
        db.commit()

        print("\n--- Demo users ---")
        for email, role, _, _ in DEMO_USERS:
            print(f"{role.value.title():<7} {email}  /  {PASSWORD}")
        print("\nDone.")
    finally:
        db.close()


if __name__ == "__main__":
    main()
