#!/usr/bin/env python3
"""
Copy games and participants from one database into another.

Typically used to move an existing SQLite file into Postgres::

    DATABASE_URL=postgresql://... python migrate_data.py --source sqlite:///avurudu_games_2025.db

Games are copied insert-if-absent by name.  Each participant is re-registered
through the normal workflow, so every copy is all-or-nothing; failures are
reported and the run continues.
"""

import argparse
import logging
import sys
from typing import Dict

from colorama import Fore, init

from avurudu.application import AvuruduApp
from avurudu.config import load_settings, setup_logging
from avurudu.errors import AvuruduError
from avurudu.schema import seed_games

init(autoreset=True)

logger = logging.getLogger('avurudu.migrate')


def migrate(source: AvuruduApp, target: AvuruduApp) -> Dict[str, int]:
    """Copy the catalog and every participant from *source* into *target*.

    Returns:
        Counts: ``games`` inserted, ``participants`` copied, ``failed``.
    """
    games = [game.to_dict() for game in source.games.list_games()]
    for game in games:
        game.pop('created_at', None)
        game.pop('updated_at', None)
    inserted = seed_games(target.store, games)

    copied = failed = 0
    # Oldest first so the target keeps the source registration order.
    for participant in reversed(source.registrations.list_participants()):
        try:
            target.registrations.register_participant({
                'firstName': participant.first_name,
                'lastName': participant.last_name,
                'contactNumber': participant.contact_number,
                'ageGroup': participant.age_group,
                'selectedGames': participant.games,
            })
            copied += 1
        except AvuruduError as e:
            failed += 1
            logger.error(f"Failed to migrate participant {participant.id}: {e.message}")
    return {'games': inserted, 'participants': copied, 'failed': failed}


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description='Avurudu Games: copy data between databases')
    parser.add_argument('--source', required=True, help='SQLAlchemy URL of the source database')
    parser.add_argument('--target', help='Target URL (default: DATABASE_URL)')
    args = parser.parse_args(argv)

    settings = load_settings()
    setup_logging(settings.log_level)
    if args.target:
        settings.database_url = args.target
    settings.seed_games = False

    source_settings = load_settings()
    source_settings.database_url = args.source
    source_settings.seed_games = False

    print(f"Migrating {args.source} -> {settings.database_url.split('@')[-1]}")
    try:
        with AvuruduApp(source_settings) as source, AvuruduApp(settings) as target:
            counts = migrate(source, target)
    except AvuruduError as e:
        print(f"{Fore.RED}✗ Migration failed: {e.message}")
        return 1

    print(f"{Fore.GREEN}✓ Games added: {counts['games']}")
    print(f"{Fore.GREEN}✓ Participants migrated: {counts['participants']}")
    if counts['failed']:
        print(f"{Fore.YELLOW}! Participants failed: {counts['failed']}")
        return 1
    print("Migration completed!")
    return 0


if __name__ == "__main__":
    sys.exit(main())
