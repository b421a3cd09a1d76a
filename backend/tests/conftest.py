"""
Shared pytest fixtures for schedule_api tests.

Every test gets a fresh in-memory SQLite database wired in through
``app.dependency_overrides[get_db]``, and sessions are real JWTs signed
with the test secret below.
"""
import os
import time
from typing import Optional

# The session verifier reads these lazily, but set them before any app import.
TEST_SECRET = "test-secret-key-for-session-tokens-only"
COOKIE_NAME = "sb-access-token"
os.environ["AUTH_JWT_SECRET"] = TEST_SECRET
os.environ["AUTH_JWT_ALGORITHM"] = "HS256"
os.environ["AUTH_JWT_AUDIENCE"] = "authenticated"
os.environ["SESSION_COOKIE_NAME"] = COOKIE_NAME

import jwt
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from schedule_api.auth import reset_session_verifier
from schedule_api.db import Base, get_db
from schedule_api.main import app

ALICE = "3b0f4c2e-9a51-4c8e-8f57-1d2a6b0e7c11"
BOB = "a7d9e8f0-2c4b-4e61-9b3a-5f8c7d6e1a22"


def make_token(
    sub: Optional[str],
    expires_in: int = 3600,
    secret: str = TEST_SECRET,
    audience: Optional[str] = "authenticated",
) -> str:
    """Mint an access token shaped like the identity service's."""
    payload = {"exp": int(time.time()) + expires_in}
    if sub is not None:
        payload["sub"] = sub
    if audience is not None:
        payload["aud"] = audience
    return jwt.encode(payload, secret, algorithm="HS256")


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite+pysqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False)


@pytest.fixture
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client_for(session_factory):
    """Factory for TestClients carrying a session cookie (or none)."""

    def override_get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    reset_session_verifier()
    app.dependency_overrides[get_db] = override_get_db

    def make(user_id: Optional[str] = None, token: Optional[str] = None) -> TestClient:
        if token is None and user_id is not None:
            token = make_token(user_id)
        cookies = {COOKIE_NAME: token} if token is not None else None
        return TestClient(app, cookies=cookies)

    yield make

    app.dependency_overrides.clear()
    reset_session_verifier()


@pytest.fixture
def alice(client_for) -> TestClient:
    return client_for(ALICE)


@pytest.fixture
def bob(client_for) -> TestClient:
    return client_for(BOB)


@pytest.fixture
def anonymous(client_for) -> TestClient:
    return client_for()
