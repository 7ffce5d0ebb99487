# scripts/setup/init_db.py
"""
Initialize database: creates all tables and the bootstrap admin.
Run once before first launch, or after adding new models.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from tiretrack.database import SessionLocal, create_tables, engine
from tiretrack.config import settings
from tiretrack.services.auth_service import ensure_bootstrap_admin
from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError


def main():
    print("TireTrack DB Initialization")
    print("=" * 40)
    print(f"Database: {engine.url.render_as_string(hide_password=True)}")

    # Test connection
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("Database connection OK")
    except SQLAlchemyError as e:
        print(f"Cannot connect to database: {e}")
        print("\nMake sure PostgreSQL is running and DATABASE_URL is set in .env")
        sys.exit(1)

    print("\nCreating tables...")
    create_tables()
    print("All tables created")

    db = SessionLocal()
    try:
        admin = ensure_bootstrap_admin(db)
    finally:
        db.close()
    if admin is not None:
        print(f"Bootstrap admin '{admin.username}' created")
    elif not settings.ADMIN_PASSWORD:
        print("ADMIN_PASSWORD not set, no admin account created")

    tables = sorted(inspect(engine).get_table_names())
    print(f"\nTables in database ({len(tables)} total):")
    for t in tables:
        print(f"   - {t}")

    print("\nDatabase ready! You can now start the backend:")
    print(f"   uvicorn tiretrack.main:app --host {settings.BACKEND_HOST} --port {settings.BACKEND_PORT} --reload")


if __name__ == "__main__":
    main()
