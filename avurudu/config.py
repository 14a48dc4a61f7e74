"""
Runtime configuration and logging setup for the Avurudu registration core.

Settings come from environment variables, optionally loaded from a ``.env``
file in the working directory.
"""

import logging
import os
from dataclasses import dataclass

from dotenv import load_dotenv

DEFAULT_DATABASE_URL = 'sqlite:///avurudu_games.db'

_TRUTHY = {'1', 'true', 'yes', 'on'}


def setup_logging(level: str = 'INFO') -> logging.Logger:
    """Configure the root ``avurudu`` logger.

    Args:
        level: Log level string (DEBUG, INFO, WARNING, ERROR, CRITICAL).
               Unknown values fall back to INFO.

    Returns:
        Configured logger instance.
    """
    numeric = getattr(logging, level.upper(), logging.INFO)
    logger = logging.getLogger('avurudu')
    if not logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter('[%(levelname)s] %(name)s: %(message)s'))
        logger.addHandler(handler)
    logger.setLevel(numeric)
    return logger


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == '':
        return default
    return raw.strip().lower() in _TRUTHY


def normalize_database_url(url: str) -> str:
    """Return *url* with the legacy ``postgres://`` scheme rewritten.

    Hosting providers still hand out ``postgres://`` URLs, which SQLAlchemy
    no longer accepts as a dialect name.
    """
    if url.startswith('postgres://'):
        return 'postgresql://' + url[len('postgres://'):]
    return url


@dataclass
class Settings:
    """Process-wide settings resolved once at startup."""

    database_url: str = DEFAULT_DATABASE_URL
    log_level: str = 'INFO'
    echo_sql: bool = False
    seed_games: bool = True


def load_settings(env_file: str = None) -> Settings:
    """Build :class:`Settings` from the environment.

    Args:
        env_file: Optional path to a dotenv file.  When omitted, ``.env`` in
            the current directory is used if present.  Values already set in
            the environment are never overridden.
    """
    if env_file:
        load_dotenv(env_file)
    else:
        load_dotenv()
    return Settings(
        database_url=normalize_database_url(os.getenv('DATABASE_URL', DEFAULT_DATABASE_URL)),
        log_level=os.getenv('AVURUDU_LOG_LEVEL', 'INFO'),
        echo_sql=_env_flag('AVURUDU_SQL_ECHO', False),
        seed_games=_env_flag('AVURUDU_SEED_GAMES', True),
    )
