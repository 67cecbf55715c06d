# backend/tests/conftest.py
"""
Shared fixtures for the settlement test suite.

Every test runs inside a connection-level transaction on an in-memory
SQLite database that is rolled back afterwards. Service code commits and
rolls back freely: sessions join the outer transaction through a
SAVEPOINT, so a service rollback only discards its own work.
"""

import os

# Set testing mode before any app imports
os.environ["is_testing"] = "true"

from datetime import datetime, timezone
from typing import Iterator
from unittest.mock import MagicMock

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.api.dependencies.database import get_db
from app.core.config import settings
from app.database import Base
from app.main import app as fastapi_app
from app import models  # noqa: F401

settings.is_testing = True

NOW = datetime(2025, 1, 14, 10, 0, tzinfo=timezone.utc)


@pytest.fixture(scope="session")
def _engine() -> Iterator[Engine]:
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    # pysqlite's own transaction handling breaks SAVEPOINT; let SQLAlchemy emit BEGIN
    @event.listens_for(engine, "connect")
    def _disable_pysqlite_transactions(dbapi_connection, connection_record):  # type: ignore[no-untyped-def]
        dbapi_connection.isolation_level = None

    @event.listens_for(engine, "begin")
    def _emit_begin(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN")

    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(_engine: Engine) -> Iterator[Session]:
    connection = _engine.connect()
    transaction = connection.begin()
    TestingSession = sessionmaker(
        bind=connection,
        expire_on_commit=False,
        join_transaction_mode="create_savepoint",
    )
    session = TestingSession()
    try:
        yield session
    finally:
        session.close()
        transaction.rollback()
        connection.close()


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def stripe_service() -> MagicMock:
    service = MagicMock()
    service.stripe_configured = True
    service.create_refund.return_value = {"id": "re_test_123", "status": "succeeded"}
    return service


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    def _override_get_db() -> Iterator[Session]:
        yield db

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    try:
        with TestClient(fastapi_app) as test_client:
            yield test_client
    finally:
        fastapi_app.dependency_overrides.pop(get_db, None)
