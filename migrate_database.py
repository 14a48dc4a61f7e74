#!/usr/bin/env python3
"""
Migration script to bring an older ``games`` table up to date.

Creates any missing tables, then adds the optional ``games`` columns
(age_limit, pre_registration, game_zone, game_time, created_at, updated_at)
that databases from earlier releases lack.  Existing rows are kept.
"""

import argparse
import sys

from colorama import Fore, init

from avurudu.config import load_settings, setup_logging
from avurudu.database import create_store
from avurudu.errors import AvuruduError
from avurudu.schema import add_missing_game_columns, ensure_schema

init(autoreset=True)


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Avurudu Games: upgrade the games table')
    parser.add_argument('--database-url', help='Override DATABASE_URL')
    parser.add_argument('--no-seed', action='store_true',
                        help='Do not insert the starter games')
    args = parser.parse_args(argv)

    settings = load_settings()
    setup_logging(settings.log_level)
    url = args.database_url or settings.database_url

    print("=" * 60)
    print("Avurudu Games Database Migration: Games Table Columns")
    print("=" * 60)
    print()
    print(f"Database URL: {url.split('@')[-1]}")
    print()

    try:
        store = create_store(url)
    except AvuruduError as e:
        print(f"{Fore.RED}✗ Error: Cannot connect to database: {e.message}")
        return 1

    try:
        ensure_schema(store, seed=False)
        added = add_missing_game_columns(store)
        if added:
            print(f"{Fore.GREEN}✓ Added columns to games table: {', '.join(added)}")
        else:
            print(f"{Fore.GREEN}✓ games table already has all columns")
        if not args.no_seed:
            ensure_schema(store, seed=True)
    except AvuruduError as e:
        print(f"{Fore.RED}✗ Migration failed: {e.message}")
        return 1
    finally:
        store.close()

    print()
    print("Migration completed successfully!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
