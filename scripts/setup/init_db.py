# scripts/setup/init_db.py
"""
Initialize local storage — creates the credential table.
Run once before first launch, or after pointing DATABASE_URL somewhere new.
Usage: python scripts/setup/init_db.py
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", ".."))

from sqlalchemy import inspect, text
from sqlalchemy.exc import SQLAlchemyError

from saffeh.config import settings
from saffeh.database import create_tables, engine


def main():
    print("🗄️  Saffeh local storage initialization")
    print("=" * 40)
    print(f"📡 Database: {settings.DATABASE_URL}")

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
        print("✅ Database connection OK")
    except SQLAlchemyError as e:
        print(f"❌ Cannot open database: {e}")
        print("\nCheck DATABASE_URL in .env and that the directory is writable.")
        sys.exit(1)

    print("\n📋 Creating tables...")
    create_tables()

    tables = inspect(engine).get_table_names()
    print(f"\n📊 Tables in database ({len(tables)} total):")
    for t in tables:
        print(f"   ✓ {t}")

    print("\n🎉 Storage ready. To try the client against a local backend:")
    print("   python -m saffeh.sandbox")


if __name__ == "__main__":
    main()
