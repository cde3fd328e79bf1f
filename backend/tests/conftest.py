"""Shared test fixtures for all test modules."""

import contextlib
import uuid

import pytest
from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import tvfees.models  # noqa: F401
from tvfees.core import database as db_module
from tvfees.core.auth import Principal
from tvfees.core.database import Base, get_db
from tvfees.models.user import UserRole
from tvfees.repositories.user_repository import UserRepository
from tvfees.schemas.user import UserCreate

# Create an in-memory SQLite engine with StaticPool so all connections
# share the same database state and there are no file-locking issues.
_test_engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
_TestSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=_test_engine)

ADMIN_ID = uuid.UUID("00000000-0000-0000-0000-0000000000a1")
COLLECTOR_ID = uuid.UUID("00000000-0000-0000-0000-0000000000c1")


@pytest.fixture(autouse=True)
def setup_database():
    """Create tables before each test and truncate all data after.

    Patches the module-level engine and SessionLocal so all application code
    uses the in-memory test database.
    """
    original_engine = db_module.engine
    original_session = db_module.SessionLocal
    db_module.engine = _test_engine
    db_module.SessionLocal = _TestSessionLocal

    Base.metadata.create_all(bind=_test_engine)

    yield
    with _test_engine.connect() as conn:
        conn.execute(text("PRAGMA foreign_keys = OFF"))
        for table in reversed(Base.metadata.sorted_tables):
            with contextlib.suppress(OperationalError):
                conn.execute(table.delete())
        conn.execute(text("PRAGMA foreign_keys = ON"))
        conn.commit()

    db_module.engine = original_engine
    db_module.SessionLocal = original_session


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


@pytest.fixture
def admin():
    return Principal(user_id=ADMIN_ID, role=UserRole.ADMIN)


@pytest.fixture
def collector():
    return Principal(user_id=COLLECTOR_ID, role=UserRole.COLLECTOR)


def make_user(db, name="Subscriber", subscribed_since_year=None, **kwargs):
    """Register a user and commit."""
    user = UserRepository(db).create(
        UserCreate(name=name, subscribed_since_year=subscribed_since_year, **kwargs)
    )
    db.commit()
    return user


@pytest.fixture
def user(db_session):
    return make_user(db_session, name="Asha Patel")


@pytest.fixture
def user_principal(user):
    return Principal(user_id=user.id, role=UserRole.USER)
