"""Shared fixtures for the test-suite: a fresh SQLite file per test."""
import os
import shutil
import sys
import tempfile
import unittest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import text

from avurudu.database import create_store
from avurudu.schema import ensure_schema
from avurudu.services import GameService, RegistrationService


GAMES = [
    {'name': 'Tug of War', 'age_limit': 'All Ages', 'pre_registration': 'Y',
     'game_zone': 'Zone F', 'game_time': '3:00 PM'},
    {'name': 'Pot Breaking', 'age_limit': 'All Ages', 'pre_registration': 'Y',
     'game_zone': 'Zone B', 'game_time': '11:00 AM'},
]


def registration(first='Alice', last='Doe', games=('Tug of War',), **extra):
    payload = {
        'firstName': first,
        'lastName': last,
        'contactNumber': '0211234567',
        'ageGroup': 'Under 12',
        'selectedGames': list(games),
    }
    payload.update(extra)
    return payload


class TmpDbMixin(unittest.TestCase):
    """Creates a temp directory holding a throwaway SQLite database."""

    def setUp(self):
        self.tmp = tempfile.mkdtemp()
        self.url = self._url('test.db')
        self.store = create_store(self.url)

    def tearDown(self):
        self.store.close()
        shutil.rmtree(self.tmp, ignore_errors=True)

    def _url(self, name: str) -> str:
        return 'sqlite:///' + os.path.join(self.tmp, name)

    def _execute(self, sql: str) -> None:
        with self.store.engine.begin() as conn:
            conn.execute(text(sql))

    def _query(self, sql: str):
        with self.store.engine.connect() as conn:
            return conn.execute(text(sql)).fetchall()

    def _count(self, table: str) -> int:
        return self._query(f"SELECT count(*) FROM {table}")[0][0]


class ServicesMixin(TmpDbMixin):
    """Schema created, two games seeded, both services ready."""

    def setUp(self):
        super().setUp()
        ensure_schema(self.store, seed=True, games=GAMES)
        self.games = GameService(self.store)
        self.registrations = RegistrationService(self.store)
