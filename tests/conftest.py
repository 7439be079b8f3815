# tests/conftest.py

import os

# Settings are read at import time; point them at throwaway infrastructure
# before anything from booking_engine is imported.
os.environ.setdefault("ENV", "local")
os.environ.setdefault("DATABASE_URL_LOCAL", "sqlite://")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("INTERNAL_API_KEY", "test-internal-key")
os.environ.setdefault("SCHEDULER_ENABLED", "false")
os.environ.setdefault("REALTIME_ENABLED", "false")
os.environ.setdefault("NOTIFICATIONS_ENABLED", "false")

import pytest
from starlette.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from unittest.mock import MagicMock

import booking_engine.models  # noqa: F401
from booking_engine.main import app
from booking_engine.api import deps
from booking_engine.db.session import get_db
from booking_engine.db.base_class import Base
from booking_engine.services.booking_events import get_event_dispatcher
from booking_engine.services.booking_lifecycle import BookingLifecycleService
from booking_engine.services.change_proposals import ChangeProposalService
from booking_engine.services.publication_gate import PublicationGate


# --- Test Database Setup ---
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session():
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    yield session
    session.close()
    Base.metadata.drop_all(bind=engine)


# --- Side effects ---
@pytest.fixture(scope="function")
def dispatcher():
    """Stands in for the Kafka/Redis fan-out; records emitted events."""
    return MagicMock()


@pytest.fixture(scope="function")
def profile_lookup():
    return MagicMock(
        return_value={
            "display_name": "Kari Nordmann",
            "avatar_url": "https://cdn.example.com/kari.png",
            "bio": "Jazz vocalist",
            "email": "kari@example.com",
        }
    )


# --- Services ---
@pytest.fixture(scope="function")
def lifecycle(db_session, dispatcher):
    return BookingLifecycleService(
        db_session, dispatcher, reset_approvals_on_edit=True, require_agreement_read=True
    )


@pytest.fixture(scope="function")
def proposals(db_session, lifecycle):
    return ChangeProposalService(db_session, lifecycle=lifecycle)


@pytest.fixture(scope="function")
def gate(db_session, dispatcher, profile_lookup):
    return PublicationGate(db_session, dispatcher, profile_lookup=profile_lookup)


# --- Test Client Fixtures ---
@pytest.fixture(scope="function")
def client(db_session, dispatcher, profile_lookup):
    """
    Provides a TestClient bound to the test database with real JWT auth and
    mocked event delivery.
    """

    def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_event_dispatcher] = lambda: dispatcher
    app.dependency_overrides[deps.get_publication_gate] = lambda: PublicationGate(
        db_session, dispatcher, profile_lookup=profile_lookup
    )

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()
