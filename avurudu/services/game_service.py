"""Business logic for the game catalog."""
import logging
from typing import Any, Dict, List, Mapping

from sqlalchemy.exc import IntegrityError

from ..database import Store
from ..errors import ConflictError, InvalidInputError, NotFoundError
from ..models import Game
from ..repositories.game_repository import GameRepository

logger = logging.getLogger('avurudu.services.games')

GAME_FIELDS = ('name', 'age_limit', 'pre_registration', 'game_zone', 'game_time')

CREATE_DEFAULTS = {
    'age_limit': 'All Ages',
    'pre_registration': 'N',
    'game_zone': '',
    'game_time': '',
}


def normalize_pre_registration(value: Any) -> str:
    """Return ``'Y'`` or ``'N'`` for a boolean-like *value*."""
    if isinstance(value, bool):
        return 'Y' if value else 'N'
    if isinstance(value, str) and value.strip().upper() in ('Y', 'N'):
        return value.strip().upper()
    raise InvalidInputError("pre_registration must be 'Y' or 'N'",
                            details={'field': 'pre_registration'})


def _clean_name(value: Any) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidInputError("Game name is required", details={'field': 'name'})
    return value.strip()


def _clean_text(field: str, value: Any) -> str:
    if not isinstance(value, str):
        raise InvalidInputError(f"{field} must be text", details={'field': field})
    return value.strip()


class GameService:
    """Owns the lifecycle of :class:`~avurudu.models.Game` entries.

    Rules
    -----
    * Names are unique across the catalog (exact match, as stored).
    * Updates are partial: only supplied fields change, ``updated_at`` is
      always refreshed, and at least one field must be supplied.
    * A game with registered participants cannot be deleted.
    """

    def __init__(self, store: Store, repository: GameRepository = None) -> None:
        self._store = store
        self._repo = repository or GameRepository(store)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list_games(self) -> List[Game]:
        """Return the whole catalog sorted by name (empty list if none)."""
        with self._store.session_scope('list_games', 'game') as db:
            return self._repo.list_all(db)

    def get_game(self, game_id: int) -> Game:
        with self._store.session_scope('get_game', 'game') as db:
            game = self._repo.find(db, game_id)
        if game is None:
            raise NotFoundError(f"Game {game_id} not found", operation='get_game',
                                entity='game', details={'id': game_id})
        return game

    def get_game_by_name(self, name: str) -> Game:
        with self._store.session_scope('get_game_by_name', 'game') as db:
            game = self._repo.find_by_name(db, name)
        if game is None:
            raise NotFoundError(f"Game '{name}' not found", operation='get_game_by_name',
                                entity='game', details={'name': name})
        return game

    def count_participants(self, game_id: int) -> int:
        """Return how many participants are registered for *game_id*."""
        with self._store.session_scope('count_participants', 'game') as db:
            if self._repo.find(db, game_id) is None:
                raise NotFoundError(f"Game {game_id} not found", operation='count_participants',
                                    entity='game', details={'id': game_id})
            return self._repo.count_participants(db, game_id)

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def create_game(self, fields: Mapping[str, Any]) -> Game:
        """Add a game to the catalog.

        Args:
            fields: ``name`` (required) plus any of ``age_limit``,
                ``pre_registration``, ``game_zone`` and ``game_time``.
                Missing or ``None`` optional fields take their defaults.

        Returns:
            The stored game including its id and timestamps.

        Raises:
            InvalidInputError: ``name`` is missing or blank.
            ConflictError:     Another game already has that name.
        """
        values = dict(CREATE_DEFAULTS)
        values['name'] = _clean_name(fields.get('name'))
        for field in ('age_limit', 'game_zone', 'game_time'):
            if fields.get(field) is not None:
                values[field] = _clean_text(field, fields[field])
        if fields.get('pre_registration') is not None:
            values['pre_registration'] = normalize_pre_registration(fields['pre_registration'])
        if not values['age_limit']:
            values['age_limit'] = CREATE_DEFAULTS['age_limit']

        with self._store.session_scope('create_game', 'game') as db:
            if self._repo.find_by_name(db, values['name']) is not None:
                raise self._name_conflict(values['name'], 'create_game')
            try:
                game_id = self._repo.insert(db, values)
            except IntegrityError as e:
                raise self._name_conflict(values['name'], 'create_game') from e
            game = self._repo.find(db, game_id)
        logger.info(f"Game created: {game.name} (id={game.id})")
        return game

    def update_game(self, game_id: int, fields: Mapping[str, Any]) -> Game:
        """Patch the supplied fields of *game_id*.

        Raises:
            InvalidInputError: No known field supplied, a supplied value is
                invalid, or none of the supplied fields exist in this
                database's ``games`` table.
            NotFoundError:     *game_id* does not exist.
            ConflictError:     The new name belongs to a different game.
        """
        values = {}
        for field in GAME_FIELDS:
            if fields.get(field) is None:
                continue
            if field == 'name':
                values[field] = _clean_name(fields[field])
            elif field == 'pre_registration':
                values[field] = normalize_pre_registration(fields[field])
            else:
                values[field] = _clean_text(field, fields[field])
        if not values:
            raise InvalidInputError("At least one field to update is required",
                                    operation='update_game', entity='game')

        writable, dropped = self._repo.split_writable(values)
        if dropped:
            logger.warning("games table has no column for %s; ignoring", ', '.join(dropped))
        if not writable:
            raise InvalidInputError("None of the supplied fields are supported by this database",
                                    operation='update_game', entity='game',
                                    details={'unsupported': dropped})

        with self._store.session_scope('update_game', 'game') as db:
            if self._repo.find(db, game_id) is None:
                raise NotFoundError(f"Game {game_id} not found", operation='update_game',
                                    entity='game', details={'id': game_id})
            if 'name' in writable and self._repo.find_by_name(
                    db, writable['name'], exclude_id=game_id) is not None:
                raise self._name_conflict(writable['name'], 'update_game')
            try:
                self._repo.update(db, game_id, writable)
            except IntegrityError as e:
                raise self._name_conflict(writable.get('name'), 'update_game') from e
            game = self._repo.find(db, game_id)
        logger.info(f"Game updated: {game.name} (id={game.id}, fields={sorted(writable)})")
        return game

    def delete_game(self, game_id: int) -> Dict[str, Any]:
        """Remove *game_id* from the catalog.

        Returns:
            ``{'id': game_id, 'message': ...}``

        Raises:
            NotFoundError: *game_id* does not exist.
            ConflictError: Participants are registered for the game; the
                count is in ``details['participant_count']``.
        """
        with self._store.session_scope('delete_game', 'game') as db:
            if self._repo.find(db, game_id) is None:
                raise NotFoundError(f"Game {game_id} not found", operation='delete_game',
                                    entity='game', details={'id': game_id})
            count = self._repo.count_participants(db, game_id)
            if count > 0:
                raise self._game_in_use(game_id, count)
            try:
                self._repo.delete(db, game_id)
            except IntegrityError as e:
                # A registration committed after the count; the foreign key
                # refused the delete.
                db.rollback()
                raise self._game_in_use(
                    game_id, self._repo.count_participants(db, game_id)) from e
        logger.info(f"Game deleted: id={game_id}")
        return {'id': game_id, 'message': 'Game deleted successfully'}

    @staticmethod
    def _game_in_use(game_id: int, count: int) -> ConflictError:
        logger.warning("Refusing to delete game %s: %d participants", game_id, count)
        return ConflictError(
            f"Cannot delete game as it is associated with {count} participants",
            operation='delete_game', entity='game',
            details={'id': game_id, 'participant_count': count})

    @staticmethod
    def _name_conflict(name: str, operation: str) -> ConflictError:
        logger.warning("Game name already exists: %s", name)
        return ConflictError("A game with this name already exists", operation=operation,
                             entity='game', details={'name': name})
