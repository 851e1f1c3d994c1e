"""
Add platform_policy_version_accepted column to bookings table.
For a NEW database: not needed; lendit.models.booking.Booking already defines this (create_all creates it).
Run once on an EXISTING DB: python scripts/migrate_bookings_policy_version.py (from project root)
Existing bookings keep NULL (legacy: never reported as outdated).
"""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from sqlalchemy import text, inspect
from lendit.database import engine


def main():
    insp = inspect(engine)
    existing = {c["name"] for c in insp.get_columns("bookings")}
    if "platform_policy_version_accepted" in existing:
        print("  skip (exists): bookings.platform_policy_version_accepted")
        print("Done.")
        return
    with engine.begin() as conn:
        conn.execute(text('ALTER TABLE bookings ADD COLUMN "platform_policy_version_accepted" INTEGER'))
        print("  added: bookings.platform_policy_version_accepted")
    print("Done. bookings table has platform_policy_version_accepted column.")


if __name__ == "__main__":
    main()
