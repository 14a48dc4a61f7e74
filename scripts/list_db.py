import sys

from sqlalchemy import inspect, text

from avurudu.config import load_settings
from avurudu.database import create_store

store = create_store(load_settings().database_url)
ins = inspect(store.engine)
print('TABLES:', ins.get_table_names())
print('GAMES COLUMNS:', sorted(store.capabilities.game_columns))
missing = store.capabilities.missing_game_columns
if missing:
    print('MISSING:', missing, '(run migrate_database.py)')
with store.engine.connect() as conn:
    for t in ['participants', 'games', 'participant_games']:
        try:
            cnt = conn.execute(text(f"SELECT count(*) FROM {t}")).scalar()
            print(f"{t}: {cnt}")
        except Exception as e:
            print(f"{t}: ERROR {e}")
store.close()
sys.exit(0)
