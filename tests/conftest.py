import os

os.environ.setdefault("ENV", "test")
os.environ.setdefault("FERNET_KEY", "MDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDAwMDA=")
os.environ.setdefault("PUBLIC_BASE_URL", "https://bridge.example.com")

import pytest
from fastapi.testclient import TestClient

from app.db import Base, SessionLocal, engine, get_db
import app.models  # noqa: F401

pytest_plugins = [
    "tests.fixtures.profile_fixtures",
    "tests.fixtures.tenant_fixtures",
    "tests.fixtures.connection_fixtures",
]


@pytest.fixture(scope="function")
def db():
    """Fresh schema per test on the shared in-memory SQLite connection."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db):
    from app.main import create_app

    app = create_app(testing=True)

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()
