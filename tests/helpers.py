import os
import sys
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
import pytest

# Ensure the project root is on the Python path
sys.path.append(str(Path(__file__).resolve().parents[1]))

from crmterm import database
from crmterm import models  # noqa: F401  # registers tables on Base
from crmterm.config import Settings
from crmterm.storage import Store


def get_temp_session():
    db_fd, db_path = tempfile.mkstemp()
    os.close(db_fd)
    engine = create_engine(f"sqlite:///{db_path}", future=True)
    TestingSession = sessionmaker(bind=engine, expire_on_commit=False)
    database.Base.metadata.create_all(engine)
    return TestingSession, Path(db_path)


@pytest.fixture
def session_factory(tmp_path):
    """Provide a sessionmaker bound to a throwaway SQLite file."""
    engine = create_engine(f"sqlite:///{tmp_path / 'crm.db'}", future=True)
    database.Base.metadata.create_all(engine)
    TestingSession = sessionmaker(bind=engine, expire_on_commit=False)
    yield TestingSession
    engine.dispose()


@pytest.fixture
def store(session_factory):
    return Store(session_factory)


@pytest.fixture
def settings(tmp_path):
    s = Settings(tmp_path / "config.json", "Dana", "UTC")
    s.save()
    return s


class FixedClock:
    """Callable clock that tests can move by hand."""

    def __init__(self, now=None):
        self.now = now or datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now


class FakeAccount:
    def __init__(self, name, id=None):
        self.name = name
        self.id = id

    def __repr__(self):
        return f"FakeAccount({self.name!r})"


def make_prompt(responses):
    iterator = iter(responses)

    def _prompt(*args, **kwargs):
        return next(iterator)

    return _prompt
