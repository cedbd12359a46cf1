#!/usr/bin/env python
"""
db_setup.py

Create the ContentDesk tables in the database named by DATABASE_URL.
Existing tables are left untouched; only missing ones are created.

Required .env variables (backend/.env or the environment):
  DATABASE_URL

Usage:
  python scripts/db_setup.py            # create missing tables
  python scripts/db_setup.py --check    # list tables and exit
"""
import argparse
import asyncio
import sys
from pathlib import Path

# Add backend directory to path so we can import the app
backend_dir = Path(__file__).resolve().parent.parent / "backend"
sys.path.insert(0, str(backend_dir))

from sqlalchemy import inspect  # noqa: E402

from app.db import models  # noqa: E402,F401  registers every model on Base.metadata
from app.db.base import Base  # noqa: E402
from app.db.session import DATABASE_URL, engine  # noqa: E402


def _masked(url: str) -> str:
    if "@" not in url:
        return url
    scheme, rest = url.split("://", 1)
    return f"{scheme}://***@{rest.split('@', 1)[1]}"


async def existing_tables() -> set:
    async with engine.connect() as conn:
        names = await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())
    return set(names)


async def create_tables() -> None:
    before = await existing_tables()
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    after = await existing_tables()

    for table in sorted(Base.metadata.tables):
        if table in before:
            print(f"  [OK] {table} exists")
        elif table in after:
            print(f"  [+] {table} created")
        else:
            print(f"  [ERROR] {table} missing")


async def check_tables() -> int:
    present = await existing_tables()
    missing = [t for t in sorted(Base.metadata.tables) if t not in present]
    for table in sorted(Base.metadata.tables):
        print(f"  [{'OK' if table in present else '!'}] {table}")
    return 1 if missing else 0


async def main(check: bool) -> int:
    print(f"Database: {_masked(DATABASE_URL)}")
    try:
        if check:
            return await check_tables()
        await create_tables()
        return 0
    finally:
        await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Create ContentDesk database tables")
    parser.add_argument("--check", action="store_true", help="Only report which tables exist")
    args = parser.parse_args()
    sys.exit(asyncio.run(main(args.check)))
