"""
Schema management: table creation, starter catalog seeding and the ad-hoc
column upgrade for ``games`` tables created by older releases.
"""

import logging
from typing import Dict, List

from sqlalchemy import insert, select, text
from sqlalchemy.exc import SQLAlchemyError

from .database import (GAME_OPTIONAL_COLUMNS, Base, GameRecord,
                       SchemaCapabilities, Store, utcnow)
from .errors import InitializationError, StoreError

logger = logging.getLogger('avurudu.schema')

STARTER_GAMES: List[Dict[str, str]] = [
    {'name': 'Kotta Pora (Pillow Fighting)', 'age_limit': 'Under 12',
     'pre_registration': 'Y', 'game_zone': 'Zone A', 'game_time': '10:00 AM'},
    {'name': 'Kana Mutti (Pot Breaking)', 'age_limit': 'All Ages',
     'pre_registration': 'Y', 'game_zone': 'Zone B', 'game_time': '11:00 AM'},
    {'name': 'Banis Kaema (Bun Eating)', 'age_limit': 'All Ages',
     'pre_registration': 'Y', 'game_zone': 'Zone C', 'game_time': '12:00 PM'},
    {'name': 'Lissana Gaha Nageema (Greasy Pole Climbing)', 'age_limit': 'Adult (Over 16)',
     'pre_registration': 'N', 'game_zone': 'Zone D', 'game_time': '1:00 PM'},
    {'name': 'Aliyata Aha Thaebeema (Feeding the Elephant)', 'age_limit': 'All Ages',
     'pre_registration': 'N', 'game_zone': 'Zone E', 'game_time': '2:00 PM'},
    {'name': 'Kamba Adeema (Tug of War)', 'age_limit': 'Adult (Over 16)',
     'pre_registration': 'Y', 'game_zone': 'Zone F', 'game_time': '3:00 PM'},
    {'name': 'Coconut Scraping', 'age_limit': 'Adult (Over 16)',
     'pre_registration': 'Y', 'game_zone': 'Zone G', 'game_time': '4:00 PM'},
    {'name': 'Lime and Spoon Race', 'age_limit': 'All Ages',
     'pre_registration': 'Y', 'game_zone': 'Zone C', 'game_time': '5:00 PM'},
]

# DDL types for columns added to a drifted games table.
_COLUMN_DDL = {
    'age_limit': "TEXT DEFAULT 'All Ages'",
    'pre_registration': "VARCHAR(1) DEFAULT 'N'",
    'game_zone': "TEXT DEFAULT ''",
    'game_time': "TEXT DEFAULT ''",
    'created_at': 'TIMESTAMP',
    'updated_at': 'TIMESTAMP',
}


def ensure_schema(store: Store, seed: bool = True,
                  games: List[Dict[str, str]] = None) -> SchemaCapabilities:
    """Create missing tables, optionally seed the catalog, load capabilities.

    Safe to call on every start: existing tables are left untouched and
    seeding only inserts names that are not already present.

    Raises:
        InitializationError: If table creation or seeding fails.
    """
    try:
        Base.metadata.create_all(bind=store.engine)
    except SQLAlchemyError as e:
        logger.error(f"Failed to create tables: {e}")
        raise InitializationError("Failed to create database tables",
                                  operation='ensure_schema') from e
    try:
        capabilities = store.refresh_capabilities()
        if seed:
            seed_games(store, games if games is not None else STARTER_GAMES)
    except StoreError as e:
        raise InitializationError(f"Failed to initialize database: {e.message}",
                                  operation='ensure_schema') from e
    logger.info("Database tables initialized successfully")
    return capabilities


def seed_games(store: Store, games: List[Dict[str, str]]) -> int:
    """Insert every game in *games* whose name is not yet in the catalog.

    Existing rows are never modified.  Only columns present in the table are
    written.

    Returns:
        Number of games inserted.
    """
    capabilities = store.capabilities
    table = GameRecord.__table__
    with store.session_scope('seed_games', 'game') as db:
        existing = set(db.execute(select(table.c.name)).scalars())
        added = 0
        for game in games:
            if game['name'] in existing:
                continue
            values = {k: v for k, v in game.items() if k != 'id' and capabilities.has(k)}
            now = utcnow()
            for column in ('created_at', 'updated_at'):
                if capabilities.has(column):
                    values[column] = now
            db.execute(insert(table).values(**values))
            existing.add(game['name'])
            added += 1
    if added:
        logger.info(f"Seeded {added} games into the catalog")
    return added


def add_missing_game_columns(store: Store) -> List[str]:
    """Add every optional ``games`` column the table lacks.

    Timestamps of existing rows are back-filled with the current time; other
    new columns take their DDL default.  Nothing is dropped or rewritten.

    Returns:
        Names of the columns that were added.
    """
    capabilities = store.refresh_capabilities()
    missing = [c for c in GAME_OPTIONAL_COLUMNS if not capabilities.has(c)]
    if not missing:
        logger.info("games table already has all columns")
        return []
    now = utcnow()
    try:
        with store.engine.begin() as conn:
            for column in missing:
                ddl = _COLUMN_DDL[column]
                if column in ('created_at', 'updated_at') and store.engine.dialect.name == 'postgresql':
                    ddl = 'TIMESTAMPTZ'
                conn.execute(text(f"ALTER TABLE games ADD COLUMN {column} {ddl}"))
                logger.info(f"Added column games.{column}")
            for column in ('created_at', 'updated_at'):
                if column in missing:
                    conn.execute(GameRecord.__table__.update().values({column: now}))
    except SQLAlchemyError as e:
        logger.error(f"Error adding columns to games table: {e}")
        raise StoreError("Failed to upgrade the games table",
                         operation='add_missing_game_columns', entity='game') from e
    store.refresh_capabilities()
    return missing
