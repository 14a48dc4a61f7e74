"""Repository base class used by all concrete repositories."""
import logging

from sqlalchemy.exc import SQLAlchemyError

from ..database import Store
from ..errors import StoreError


class BaseRepository:
    """Holds the :class:`~avurudu.database.Store` and a per-class logger.

    Repositories never open or commit transactions themselves: every method
    takes the *db* session of the caller's ``session_scope`` so that several
    repository calls can share one atomic unit.
    """

    entity = 'record'

    def __init__(self, store: Store) -> None:
        self._store = store
        self._log = logging.getLogger(f'avurudu.repository.{type(self).__name__}')

    @property
    def capabilities(self):
        return self._store.capabilities

    def _store_error(self, operation: str, exc: SQLAlchemyError) -> StoreError:
        """Log *exc* and wrap it in a :class:`StoreError` naming *operation*."""
        self._log.error("%s failed for %s: %s", operation, self.entity, exc)
        return StoreError(f"Failed to {operation.replace('_', ' ')} {self.entity}",
                          operation=operation, entity=self.entity)
