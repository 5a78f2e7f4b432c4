"""
Shared test fixtures for GarmentFlow tests

Provides database setup, client creation, and a two-session database for
concurrency tests.
"""
import os

# Keep the app from touching a real PostgreSQL database during tests
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")
os.environ.setdefault("LOG_FORMAT", "text")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.main import app
from app.db.base import Base
from app.db.session import get_db
from tests.factories import reset_sequences


# Create in-memory SQLite database for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def create_tables(engine):
    """Create all tables for testing using SQLAlchemy metadata"""
    # Import all models to ensure they're registered with Base
    import app.models  # noqa: F401

    Base.metadata.create_all(bind=engine)


def drop_tables(engine):
    """Drop all tables after testing"""
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db_session():
    """Create a fresh database session for each test"""
    create_tables(engine)
    reset_sequences()

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        drop_tables(engine)


@pytest.fixture
def db(db_session):
    """Alias for db_session"""
    return db_session


@pytest.fixture
def client(db_session):
    """Create a test client with database override"""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def actor_headers():
    return {"X-Actor": "planner@factory.test"}


@pytest.fixture
def session_factory(tmp_path):
    """
    File-backed SQLite database shared by several independent sessions.

    Each session gets its own connection, so commits made by one session are
    only visible to another after it re-reads.
    """
    file_engine = create_engine(
        f"sqlite:///{tmp_path / 'garmentflow.db'}",
        connect_args={"check_same_thread": False, "timeout": 5},
    )
    create_tables(file_engine)
    reset_sequences()

    factory = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
    yield factory

    drop_tables(file_engine)
    file_engine.dispose()
