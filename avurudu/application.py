"""Composition root wiring the store, repositories and services together."""
import logging

from .config import Settings, load_settings, setup_logging
from .database import Store, create_store
from .repositories import GameRepository, ParticipantRepository
from .schema import ensure_schema
from .services import GameService, RegistrationService

logger = logging.getLogger('avurudu.app')


class AvuruduApp:
    """Owns the :class:`~avurudu.database.Store` for the life of the process.

    Usage::

        with AvuruduApp.from_env() as app:
            app.registrations.register_participant({...})

    Attributes:
        settings:      Resolved :class:`~avurudu.config.Settings`.
        store:         The shared store client.
        games:         :class:`~avurudu.services.GameService`.
        registrations: :class:`~avurudu.services.RegistrationService`.
    """

    def __init__(self, settings: Settings, store: Store = None,
                 initialize: bool = True) -> None:
        self.settings = settings
        self.store = store or create_store(settings.database_url, echo=settings.echo_sql)
        if initialize:
            ensure_schema(self.store, seed=settings.seed_games)

        game_repo = GameRepository(self.store)
        participant_repo = ParticipantRepository(self.store)
        self.games = GameService(self.store, game_repo)
        self.registrations = RegistrationService(self.store, participant_repo, game_repo)

    @classmethod
    def from_env(cls, env_file: str = None) -> 'AvuruduApp':
        """Load settings, configure logging and build the app."""
        settings = load_settings(env_file)
        setup_logging(settings.log_level)
        logger.info("Using database %s", settings.database_url.split('@')[-1])
        return cls(settings)

    def health(self) -> dict:
        """Return ``{'status': 'ok'}``; raises StoreError when the DB is down."""
        self.store.ping()
        return {'status': 'ok'}

    def close(self) -> None:
        self.store.close()

    def __enter__(self) -> 'AvuruduApp':
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
