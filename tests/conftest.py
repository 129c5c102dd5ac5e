import os

# The API builds its Database at import time
os.environ["DATABASE_URL"] = "sqlite://"

import pytest

from lockstats.storage.config_store import ConfigStore
from lockstats.storage.database import Database
from lockstats.storage.models import LockHistory

NOW = 1_700_000_000
WEEK = 7 * 24 * 60 * 60


@pytest.fixture
def database():
    db = Database("sqlite://")
    db.create_tables()
    yield db
    db.engine.dispose()


@pytest.fixture
def config_store(database):
    store = ConfigStore(database)
    store.set_config("tool_lockstats", "threshold", 1)
    return store


def insert_history(database, rows):
    session = database.get_session()
    try:
        for row in rows:
            values = {"taskid": 1, "lockcount": 1, "released": NOW - 60}
            values.update(row)
            session.add(LockHistory(**values))
        session.commit()
    finally:
        session.close()


@pytest.fixture
def add_history(database):
    def _add(*rows):
        insert_history(database, rows)

    return _add
