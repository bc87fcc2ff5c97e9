#!/usr/bin/env python3
"""
Seed the durable store with the default forex categories.

Usage:
    python scripts/seed_catalog.py
    python scripts/seed_catalog.py --create-tables

Safe to re-run: categories whose slug already exists are skipped.
"""

import argparse
import asyncio
import sys

from dotenv import load_dotenv

load_dotenv()

from forexhub.config import get_settings
from forexhub.logging_config import configure_logging
from forexhub.storage.errors import InitializationError
from forexhub.storage.seed import DEFAULT_CATEGORIES, seed_default_categories
from forexhub.storage.sql_adapter import SqlStoreAdapter


async def seed_catalog(create_tables: bool) -> int:
    settings = get_settings()
    if not settings.DATABASE_URL:
        print("DATABASE_URL is not set; nothing to seed.")
        return 1

    adapter = SqlStoreAdapter(
        settings.DATABASE_URL,
        pool_size=1,
        connect_timeout_seconds=settings.PROBE_TIMEOUT_SECONDS,
        auto_create_tables=create_tables,
    )
    try:
        await adapter.initialize()
    except InitializationError as e:
        print(f"Could not reach the database: {e}")
        return 1

    try:
        print("Seeding categories...")
        created = await seed_default_categories(adapter)
        print(f"Done! {created} created, {len(DEFAULT_CATEGORIES)} configured.")
    finally:
        await adapter.close()
    return 0


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Seed default forex categories")
    parser.add_argument("--create-tables", action="store_true", help="Create missing tables first (local dev)")
    args = parser.parse_args()

    configure_logging(json_format=False, level="WARNING")
    sys.exit(asyncio.run(seed_catalog(args.create_tables)))
