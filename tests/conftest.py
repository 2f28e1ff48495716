"""
Test configuration and fixtures for the LinkForge service.
This centralizes all test setup, making individual tests clean.
"""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from main import app
from linkforge_app.config import settings
from linkforge_app.database.connection import Base
from linkforge_app.dependencies import get_directory, get_queue
from linkforge_app.directory.strategies import InMemoryLinkDirectory, SQLAlchemyLinkDirectory
from linkforge_app.queue.strategies import InMemoryQueue

# Test database configuration
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=engine)


@pytest.fixture(scope="function")
def db_session_factory():
    """
    Create fresh tables for each test and hand out the session factory.
    This ensures tests are isolated and don't affect each other.
    """
    Base.metadata.create_all(bind=engine)
    try:
        yield TestingSessionLocal
    finally:
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def directory(db_session_factory):
    """SQL-backed link directory on the test database"""
    sql_directory = SQLAlchemyLinkDirectory(db_session_factory)
    yield sql_directory
    sql_directory.close()


@pytest.fixture(scope="function")
def memory_directory():
    return InMemoryLinkDirectory()


@pytest.fixture(scope="function")
def queue():
    return InMemoryQueue()


@pytest.fixture(scope="function")
def client(directory, queue, monkeypatch):
    """
    Create a test client with the directory and queue overridden.
    Clicks are tracked inline so tests don't need a worker.
    """
    monkeypatch.setattr(settings, "tracking_mode", "inline")
    monkeypatch.setattr(settings, "embedded_worker", False)

    app.dependency_overrides[get_directory] = lambda: directory
    app.dependency_overrides[get_queue] = lambda: queue

    # The context manager keeps one event loop alive for background click tasks
    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
