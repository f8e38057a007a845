"""
Pytest configuration and shared fixtures for backend tests.

WHAT: Test database, seeded marketplace data, controllable clock
WHY: Every chat test needs profiles, an agency and an offer to talk about
HOW: File-backed SQLite per test, sessions built the same way as get_db()
"""

import pytest
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import timedelta

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker

from safrgo.core.database import Base, enable_sqlite_pragmas
from safrgo.core.chat_manager import ChatManager
from safrgo.core.models import (
    Profile, Agency, Offer, ProfileRole, AgencyStatus, SubscriptionStatus
)
from safrgo.utils.time_utils import utcnow


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "unit: Unit tests (isolated component tests)"
    )
    config.addinivalue_line(
        "markers", "integration: Integration tests (multiple components)"
    )


@pytest.fixture
def engine(tmp_path):
    """Fresh SQLite database with all tables."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'chat.db'}",
        connect_args={"check_same_thread": False},
        future=True
    )
    event.listen(engine, "connect", enable_sqlite_pragmas)
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    """Context-managed sessions with get_db() semantics, bound to the test engine."""
    TestSession = sessionmaker(bind=engine, expire_on_commit=False, autoflush=False)

    @contextmanager
    def factory():
        session = TestSession()
        try:
            yield session
            session.commit()
        except Exception:
            session.rollback()
            raise
        finally:
            session.close()

    return factory


@pytest.fixture
def db(session_factory, marketplace):
    """Session for service-level tests, opened after seeding."""
    with session_factory() as session:
        yield session


@pytest.fixture
def manager(session_factory, marketplace):
    return ChatManager(session_factory=session_factory)


@dataclass
class Marketplace:
    traveler_id: str = "u-traveler"
    other_traveler_id: str = "u-traveler-2"
    owner_id: str = "u-owner"
    agency_id: str = "ag-1"
    offer_id: str = "offer-1"
    second_offer_id: str = "offer-2"


@pytest.fixture
def marketplace(session_factory):
    """
    Seed the read-only marketplace tables.

    Agency ag-1 is active with an active subscription and is owned by u-owner.
    """
    ids = Marketplace()
    with session_factory() as session:
        session.add_all([
            Profile(id=ids.traveler_id, name="Amina", email="amina@example.com",
                    role=ProfileRole.TRAVELER),
            Profile(id=ids.other_traveler_id, name="Youssef", email="youssef@example.com",
                    role=ProfileRole.TRAVELER),
            Profile(id=ids.owner_id, name="Atlas Voyages", email="owner@atlas.example.com",
                    role=ProfileRole.AGENCY),
        ])
        session.flush()
        session.add(Agency(
            id=ids.agency_id,
            owner_id=ids.owner_id,
            name="Atlas Voyages",
            slug="atlas-voyages",
            status=AgencyStatus.ACTIVE,
            subscription_status=SubscriptionStatus.ACTIVE,
        ))
        session.flush()
        session.add_all([
            Offer(id=ids.offer_id, agency_id=ids.agency_id, title="Umrah 15 days"),
            Offer(id=ids.second_offer_id, agency_id=ids.agency_id, title="Istanbul weekend"),
        ])
    return ids


@pytest.fixture
def set_agency(session_factory, marketplace):
    """Change the seeded agency's status fields."""
    def _set(status=None, subscription_status=None):
        with session_factory() as session:
            agency = session.get(Agency, marketplace.agency_id)
            if status is not None:
                agency.status = AgencyStatus(status)
            if subscription_status is not None:
                agency.subscription_status = SubscriptionStatus(subscription_status)
    return _set


class FakeClock:
    """utcnow() replacement that moves forward one second per call."""

    def __init__(self):
        self.now = utcnow()

    def __call__(self):
        self.now = self.now + timedelta(seconds=1)
        return self.now


@pytest.fixture
def clock(monkeypatch):
    """Deterministic timestamps for messages and read marks."""
    fake = FakeClock()
    monkeypatch.setattr("safrgo.services.message_ledger.utcnow", fake)
    monkeypatch.setattr("safrgo.services.participant_registry.utcnow", fake)
    return fake
