"""
Database models and store client for the Avurudu registration core.

Works against SQLite (default) or PostgreSQL through SQLAlchemy.  There is no
module-level engine: the composition root builds a :class:`Store` and hands it
to the repositories.
"""

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import FrozenSet, Iterator, Optional

from sqlalchemy import (Column, DateTime, ForeignKey, Integer, String, Text,
                        TypeDecorator, create_engine, event, func, inspect, text)
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, declarative_base, relationship, sessionmaker
from sqlalchemy.pool import StaticPool

from .errors import AvuruduError, StoreError

logger = logging.getLogger('avurudu.database')

Base = declarative_base()


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class UTCDateTime(TypeDecorator):
    """Timezone-aware UTC datetimes on every backend.

    SQLite stores no offset, so values are converted to UTC on the way in and
    tagged as UTC on the way out.
    """

    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None and value.tzinfo is not None:
            value = value.astimezone(timezone.utc)
        return value

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc)


class ParticipantRecord(Base):
    """Person registered for one or more games."""
    __tablename__ = "participants"

    id = Column(Integer, primary_key=True, autoincrement=True)
    first_name = Column(Text, nullable=False)
    last_name = Column(Text, nullable=False)
    contact_number = Column(Text, nullable=False)
    age_group = Column(Text, nullable=False)
    registration_date = Column(UTCDateTime(), nullable=False,
                               server_default=func.current_timestamp())

    # Relationships
    game_links = relationship("ParticipantGameRecord", back_populates="participant",
                              cascade="all, delete-orphan", passive_deletes=True)


class GameRecord(Base):
    """Game catalog entry.

    Only ``id`` and ``name`` are guaranteed to exist in older databases;
    every other column is optional and gated by :class:`SchemaCapabilities`.
    Defaults live on the server side so Core inserts never name a column the
    table may lack.
    """
    __tablename__ = "games"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False, unique=True)
    age_limit = Column(Text, server_default='All Ages')
    pre_registration = Column(String(1), server_default='N')
    game_zone = Column(Text, server_default='')
    game_time = Column(Text, server_default='')
    created_at = Column(UTCDateTime(), server_default=func.current_timestamp())
    updated_at = Column(UTCDateTime(), server_default=func.current_timestamp())


class ParticipantGameRecord(Base):
    """Many-to-many link between a participant and a game."""
    __tablename__ = "participant_games"

    participant_id = Column(Integer, ForeignKey("participants.id", ondelete="CASCADE"),
                            primary_key=True)
    game_id = Column(Integer, ForeignKey("games.id", ondelete="RESTRICT"),
                     primary_key=True, index=True)

    participant = relationship("ParticipantRecord", back_populates="game_links")


GAME_REQUIRED_COLUMNS = ('id', 'name')
GAME_OPTIONAL_COLUMNS = ('age_limit', 'pre_registration', 'game_zone', 'game_time',
                         'created_at', 'updated_at')
GAME_COLUMNS = GAME_REQUIRED_COLUMNS + GAME_OPTIONAL_COLUMNS


@dataclass(frozen=True)
class SchemaCapabilities:
    """Which ``games`` columns the connected database actually has."""

    game_columns: FrozenSet[str] = frozenset(GAME_COLUMNS)

    def has(self, column: str) -> bool:
        return column in self.game_columns

    @property
    def missing_game_columns(self):
        return [c for c in GAME_COLUMNS if c not in self.game_columns]

    @property
    def is_current(self) -> bool:
        return not self.missing_game_columns


def _enable_sqlite_foreign_keys(dbapi_connection, connection_record):
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


class Store:
    """Owns the engine and hands out transactional sessions.

    Created once by the composition root and closed at shutdown.
    """

    def __init__(self, engine: Engine) -> None:
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, autocommit=False,
                                             autoflush=False, expire_on_commit=False)
        self._capabilities: Optional[SchemaCapabilities] = None

    @property
    def is_sqlite(self) -> bool:
        return self.engine.dialect.name == 'sqlite'

    @property
    def capabilities(self) -> SchemaCapabilities:
        """The capability descriptor, loaded on first use."""
        if self._capabilities is None:
            self.refresh_capabilities()
        return self._capabilities

    def refresh_capabilities(self) -> SchemaCapabilities:
        """Re-read the ``games`` column list from the database."""
        try:
            inspector = inspect(self.engine)
            if inspector.has_table('games'):
                columns = frozenset(col['name'] for col in inspector.get_columns('games'))
            else:
                columns = frozenset(GAME_COLUMNS)
        except SQLAlchemyError as e:
            logger.error(f"Error inspecting games table: {e}")
            raise StoreError("Could not inspect the games table",
                             operation='refresh_capabilities', entity='game') from e
        self._capabilities = SchemaCapabilities(
            game_columns=frozenset(c for c in GAME_COLUMNS if c in columns))
        if not self._capabilities.is_current:
            logger.warning("games table is missing columns: %s",
                           ', '.join(self._capabilities.missing_game_columns))
        return self._capabilities

    @contextmanager
    def session_scope(self, operation: Optional[str] = None,
                      entity: Optional[str] = None) -> Iterator[Session]:
        """Yield a session wrapped in one transaction.

        Commits on normal exit; rolls back on any exception and re-raises it.
        Driver errors escaping the block (including a failed commit) surface
        as :class:`StoreError` tagged with *operation* and *entity*.
        """
        db = self._session_factory()
        try:
            yield db
            db.commit()
        except AvuruduError:
            db.rollback()
            raise
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Transaction rolled back during {operation or 'operation'}: {e}")
            raise StoreError(f"Database operation failed: {operation or 'unknown'}",
                             operation=operation, entity=entity) from e
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    def ping(self) -> bool:
        """Run ``SELECT 1``; raises :class:`StoreError` if the database is unreachable."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            logger.error(f"Health check failed: {e}")
            raise StoreError("Database is unreachable", operation='ping') from e

    def close(self) -> None:
        self.engine.dispose()


def create_store(database_url: str, echo: bool = False) -> Store:
    """Build a :class:`Store` for *database_url*.

    SQLite connections get ``PRAGMA foreign_keys=ON`` so foreign keys are
    enforced; in-memory SQLite shares one connection across sessions.
    """
    kwargs = {'echo': echo}
    if database_url.startswith('sqlite'):
        kwargs['connect_args'] = {"check_same_thread": False}
        if database_url in ('sqlite://', 'sqlite:///:memory:'):
            kwargs['poolclass'] = StaticPool
    else:
        kwargs['pool_pre_ping'] = True
    try:
        engine = create_engine(database_url, **kwargs)
    except (SQLAlchemyError, ImportError) as e:
        logger.error(f"Could not create database engine: {e}")
        raise StoreError("Could not create database engine", operation='create_store') from e
    if engine.dialect.name == 'sqlite':
        event.listen(engine, 'connect', _enable_sqlite_foreign_keys)
    return Store(engine)
