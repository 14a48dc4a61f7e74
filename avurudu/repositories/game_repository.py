"""Repository for the ``games`` table.

Statements are built with SQLAlchemy Core from the column set recorded in
:class:`~avurudu.database.SchemaCapabilities`, so a table created by an older
release (e.g. only ``id`` and ``name``) can still be read and written.
"""
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import delete, func, insert, select, update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from ..database import GAME_COLUMNS, GameRecord, ParticipantGameRecord, utcnow
from ..models import Game
from .base import BaseRepository

_TEXT_DEFAULTS = {
    'age_limit': 'All Ages',
    'pre_registration': 'N',
    'game_zone': '',
    'game_time': '',
}


class GameRepository(BaseRepository):
    """Reads and writes game rows, substituting defaults for absent columns."""

    entity = 'game'
    table = GameRecord.__table__

    def _selectable_columns(self):
        caps = self.capabilities
        return [self.table.c[name] for name in GAME_COLUMNS if caps.has(name)]

    def _to_game(self, row) -> Game:
        data = row._mapping
        values = {'id': data['id'], 'name': data['name']}
        for column, default in _TEXT_DEFAULTS.items():
            value = data.get(column)
            values[column] = default if value is None else value
        # Rows from tables without timestamp columns report "now".
        now = utcnow()
        values['created_at'] = data.get('created_at') or now
        values['updated_at'] = data.get('updated_at') or values['created_at']
        return Game(**values)

    def split_writable(self, fields: Dict) -> Tuple[Dict, List[str]]:
        """Split *fields* into columns the table has and names it lacks."""
        caps = self.capabilities
        writable = {k: v for k, v in fields.items() if caps.has(k)}
        dropped = [k for k in fields if not caps.has(k)]
        return writable, dropped

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_all(self, db: Session) -> List[Game]:
        """Return every game ordered by name."""
        stmt = select(*self._selectable_columns()).order_by(self.table.c.name.asc())
        try:
            return [self._to_game(row) for row in db.execute(stmt)]
        except SQLAlchemyError as e:
            raise self._store_error('list', e) from e

    def find(self, db: Session, game_id: int) -> Optional[Game]:
        stmt = select(*self._selectable_columns()).where(self.table.c.id == game_id)
        try:
            row = db.execute(stmt).first()
        except SQLAlchemyError as e:
            raise self._store_error('fetch', e) from e
        return self._to_game(row) if row is not None else None

    def find_by_name(self, db: Session, name: str,
                     exclude_id: Optional[int] = None) -> Optional[Game]:
        """Return the game called exactly *name*, ignoring *exclude_id*."""
        stmt = select(*self._selectable_columns()).where(self.table.c.name == name)
        if exclude_id is not None:
            stmt = stmt.where(self.table.c.id != exclude_id)
        try:
            row = db.execute(stmt).first()
        except SQLAlchemyError as e:
            raise self._store_error('fetch', e) from e
        return self._to_game(row) if row is not None else None

    def resolve_ids(self, db: Session, names: Iterable[str]) -> Dict[str, int]:
        """Map each of *names* that exists in the catalog to its id."""
        wanted = list(set(names))
        if not wanted:
            return {}
        stmt = select(self.table.c.name, self.table.c.id).where(self.table.c.name.in_(wanted))
        try:
            return {name: game_id for name, game_id in db.execute(stmt)}
        except SQLAlchemyError as e:
            raise self._store_error('resolve', e) from e

    def count_participants(self, db: Session, game_id: int) -> int:
        """Number of participants associated with *game_id*."""
        links = ParticipantGameRecord.__table__
        stmt = select(func.count()).select_from(links).where(links.c.game_id == game_id)
        try:
            return int(db.execute(stmt).scalar() or 0)
        except SQLAlchemyError as e:
            raise self._store_error('count', e) from e

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, db: Session, values: Dict) -> int:
        """Insert a game and return its id.

        ``IntegrityError`` is re-raised untouched so the caller can report a
        name conflict.
        """
        values, _ = self.split_writable(values)
        now = utcnow()
        for column in ('created_at', 'updated_at'):
            if self.capabilities.has(column):
                values[column] = now
        try:
            result = db.execute(insert(self.table).values(**values))
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise self._store_error('create', e) from e
        self._log.debug("Inserted game %r", values.get('name'))
        return result.inserted_primary_key[0]

    def update(self, db: Session, game_id: int, values: Dict) -> int:
        """Apply *values* to *game_id*, refreshing ``updated_at`` when present.

        Returns:
            Number of rows changed (0 when the id does not exist).
        """
        values, _ = self.split_writable(values)
        if self.capabilities.has('updated_at'):
            values['updated_at'] = utcnow()
        stmt = update(self.table).where(self.table.c.id == game_id).values(**values)
        try:
            return db.execute(stmt).rowcount
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise self._store_error('update', e) from e

    def delete(self, db: Session, game_id: int) -> int:
        stmt = delete(self.table).where(self.table.c.id == game_id)
        try:
            return db.execute(stmt).rowcount
        except IntegrityError:
            raise
        except SQLAlchemyError as e:
            raise self._store_error('delete', e) from e
