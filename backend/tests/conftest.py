"""Shared test fixtures for all test modules."""

import contextlib
import uuid

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app.core import database as db_module
from app.core.database import Base, get_db
from app.models.restaurant import Restaurant

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

# Well-known default restaurant ID used across all tests
DEFAULT_RESTAURANT_ID = uuid.UUID("00000000-0000-0000-0000-000000000001")


def _seed_default_restaurant(session: Session) -> None:
    """Insert a default restaurant used by all tests."""
    restaurant = session.query(Restaurant).filter(Restaurant.id == DEFAULT_RESTAURANT_ID).first()
    if restaurant is None:
        restaurant = Restaurant(
            id=DEFAULT_RESTAURANT_ID,
            name="Default Test Restaurant",
            email="owner@restaurant.test",
            commission_rate=10,
        )
        session.add(restaurant)
        session.commit()


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database. Clears data after each test.
    """
    # Patch module-level engine and session factory
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    # Seed default restaurant so all tests can reference it
    session = _TestSessionLocal()
    try:
        _seed_default_restaurant(session)
    finally:
        session.close()

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    # Restore originals
    db_module.engine = original_engine
    db_module.SessionLocal = original_session


@pytest.fixture
def default_restaurant_id():
    """Return the default restaurant ID for tests."""
    return DEFAULT_RESTAURANT_ID


@pytest.fixture
def db_session():
    """Create a database session for direct service testing."""
    gen = get_db()
    db = next(gen)
    try:
        yield db
    finally:
        for _ in gen:
            pass
