# auth_service/database.py
import os
import time

import structlog
from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

logger = structlog.get_logger(__name__)

# Base class which all database models will inherit from
Base = declarative_base()


def create_db_engine(database_url, pool_size=10):
    """
    Build the process-wide engine.

    SQLite needs check_same_thread disabled because requests are served from a
    thread pool; an in-memory SQLite database is pinned to a single connection
    so every session sees the same data. Other backends get a bounded pool.
    """
    if database_url.startswith("sqlite"):
        connect_args = {"check_same_thread": False}
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url, connect_args=connect_args, poolclass=StaticPool
            )

        path = database_url.replace("sqlite:///", "", 1)
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        return create_engine(database_url, connect_args=connect_args)

    return create_engine(
        database_url,
        pool_size=pool_size,
        max_overflow=0,
        pool_pre_ping=True,
        pool_timeout=10,
        pool_recycle=1800,
    )


def make_session_factory(engine):
    # The session is the actual handler for the database conversation
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def connect_with_retry(engine, retries=5, delay=5, sleep=time.sleep):
    """
    Probe the database until it answers, then create missing tables.

    Makes one initial attempt plus ``retries`` more, waiting ``delay`` seconds
    between them. Raises ``SystemExit`` once every attempt has failed.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            with engine.begin() as conn:
                conn.execute(text("SELECT 1"))
                Base.metadata.create_all(bind=conn)
            logger.info("database_connected", url=engine.url.render_as_string())
            return engine
        except OperationalError as e:
            logger.error("database_connect_failed", attempt=attempt, error=str(e))
            if attempt > retries:
                logger.critical("database_unavailable", attempts=attempt)
                raise SystemExit(1) from e
            logger.info(
                "database_connect_retry",
                remaining=retries - attempt + 1,
                delay_seconds=delay,
            )
            sleep(delay)


# Dependency to get the database session (used in FastAPI routes)
def get_db(request: Request):
    db = request.app.state.session_factory()
    try:
        yield db
    finally:
        db.close()
