import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from auth_service.database import connect_with_retry, create_db_engine


class FlakyEngine:
    """Engine stand-in whose begin() fails a set number of times."""

    def __init__(self, real_engine, failures):
        self.real_engine = real_engine
        self.failures = failures
        self.attempts = 0
        self.url = real_engine.url

    def begin(self):
        self.attempts += 1
        if self.attempts <= self.failures:
            raise OperationalError("SELECT 1", {}, Exception("connection refused"))
        return self.real_engine.begin()

    def __getattr__(self, name):
        return getattr(self.real_engine, name)


def test_connect_creates_tables():
    engine = create_db_engine("sqlite://")

    connect_with_retry(engine, retries=0, delay=0)

    assert {"users", "tasks"} <= set(inspect(engine).get_table_names())


def test_connect_retries_with_fixed_delay():
    delays = []
    engine = FlakyEngine(create_db_engine("sqlite://"), failures=2)

    connect_with_retry(engine, retries=5, delay=5, sleep=delays.append)

    assert engine.attempts == 3
    assert delays == [5, 5]


def test_connect_gives_up_after_retries():
    delays = []
    engine = FlakyEngine(create_db_engine("sqlite://"), failures=10)

    with pytest.raises(SystemExit):
        connect_with_retry(engine, retries=2, delay=1, sleep=delays.append)

    assert engine.attempts == 3
    assert delays == [1, 1]


def test_file_database_directory_is_created(tmp_path):
    db_path = tmp_path / "nested" / "tasks.db"

    engine = create_db_engine(f"sqlite:///{db_path}")
    connect_with_retry(engine, retries=0, delay=0)
    engine.dispose()

    assert db_path.exists()
