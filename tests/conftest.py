from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from auth_service.database import Base, create_db_engine, make_session_factory
from auth_service.security import PasswordHasher, TokenService
from config import Settings


class FakeClock:
    """Naive-UTC clock that only moves when told to."""

    def __init__(self, start=None):
        self.now = start or datetime(2024, 1, 1, 12, 0, 0)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


@pytest.fixture
def settings():
    return Settings(
        jwt_secret="test-secret",
        database_url="sqlite://",
        bcrypt_rounds=4,
        db_connect_retries=0,
        db_retry_delay_seconds=0,
        rate_limit_max=1000,
    )


@pytest.fixture
def engine(settings):
    engine = create_db_engine(settings.database_url)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = make_session_factory(engine)()
    yield session
    session.close()


@pytest.fixture
def hasher():
    return PasswordHasher(rounds=4)


@pytest.fixture
def tokens():
    return TokenService("test-secret")


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def app(settings, engine, clock):
    return create_app(settings, engine=engine, clock=clock)


@pytest.fixture
def client(app):
    with TestClient(app) as client:
        yield client


def signup(client, name, email, password="secret1", role=None):
    body = {"name": name, "email": email, "password": password}
    if role:
        body["role"] = role
    resp = client.post("/api/auth/signup", json=body)
    assert resp.status_code == 201, resp.text
    return resp.json()["data"]["user"]


def signin(client, email, password="secret1"):
    resp = client.post("/api/auth/signin", json={"email": email, "password": password})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['data']['token']}"}


@pytest.fixture
def ann(client):
    user = signup(client, "Ann", "ann@x.com")
    return user, signin(client, "ann@x.com")


@pytest.fixture
def bob(client):
    user = signup(client, "Bob", "bob@x.com")
    return user, signin(client, "bob@x.com")


@pytest.fixture
def admin(client):
    user = signup(client, "Root", "root@x.com", role="Admin")
    return user, signin(client, "root@x.com")
