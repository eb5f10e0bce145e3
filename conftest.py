"""
Pytest configuration and shared fixtures.

Test defaults for the environment are set here, before any messagely
import, so settings are built with them. Real environment variables win.
"""

import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./test_messagely.db")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("BCRYPT_WORK_FACTOR", "4")

import pytest
from fastapi.testclient import TestClient

from messagely.main import app
from messagely.storage import SessionLocal, Base, engine
from messagely import messages, users
from messagely.security import issue_token

PASSWORD = "password"


@pytest.fixture(scope="function")
def schema():
    """Fresh tables for each test."""
    from messagely import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(schema):
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client(schema):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def seeded(db):
    """
    Three users and two messages:
    m1: test1 -> test2, m2: test2 -> test1. test3 is unrelated to both.
    """
    for n, phone in ((1, "+14155550000"), (2, "+14199999999"), (3, "+14199999999")):
        users.register(
            db,
            username=f"test{n}",
            password=PASSWORD,
            first_name=f"Test{n}",
            last_name=f"Testy{n}",
            phone=phone,
        )

    m1 = messages.create_message(db, "test1", "test2", "hey test2, it's test1")
    m2 = messages.create_message(db, "test2", "test1", "hey test1, it's test2")

    return {
        "m1": m1.id,
        "m2": m2.id,
        "tokens": {name: issue_token(name) for name in ("test1", "test2", "test3")},
    }
