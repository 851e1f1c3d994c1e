"""Standalone script to create DB tables and publish v1 of any missing platform policy."""
import os
import sys

sys.path.insert(0, os.path.abspath(os.path.join(os.path.dirname(__file__), "..")))

from lendit.database import engine, SessionLocal, Base
import lendit.models  # noqa: F401  (register tables)
from lendit.seed import POLICY_TEMPLATES, seed_policies
from lendit.services.policy import current_active_version

if __name__ == "__main__":
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        seed_policies(db)
        for slug in POLICY_TEMPLATES:
            print(f"  {slug}: live version v{current_active_version(db, slug)}")
        print("Done.")
    finally:
        db.close()
