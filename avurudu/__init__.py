"""
Avurudu Games registration core.

Layered the same way throughout:

  avurudu/database.py      — SQLAlchemy models and the ``Store`` client
                             (engine, transactional sessions, schema
                             capabilities).
  avurudu/schema.py        — table creation, starter catalog, column upgrade.
  avurudu/repositories/    — pure I/O: statements against the store.
  avurudu/services/        — business rules: validation, uniqueness,
                             all-or-nothing registration.

``AvuruduApp`` (in ``avurudu/application.py``) is the integration point: it
builds the store from settings, ensures the schema and exposes the services
as public attributes (``app.games``, ``app.registrations``) for the web layer.
"""

__version__ = '1.0.0'
