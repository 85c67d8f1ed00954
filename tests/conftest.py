from datetime import datetime
from unittest.mock import MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

import carebook.cache as cache_module
from carebook.auth import get_current_user
from carebook.cache import Cache
from carebook.database import Base, get_db
from carebook.domain.bookings.actions import BookingActions
from carebook.domain.bookings.router import get_booking_actions, rate_limit_booking_writes
from carebook.main import app
from carebook.models import (
    Booking,
    BookingStatus,
    Dependent,
    Provider,
    ProviderSchedule,
    ProviderStaff,
    ProviderStatus,
    Service,
    User,
    UserRole,
)

# Monday 08:00; every test that touches the clock freezes it here
NOW = datetime(2026, 3, 2, 8, 0)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def no_redis(monkeypatch):
    """Every cache read misses and nothing is written"""
    monkeypatch.setattr(cache_module.cache, "_client_factory", lambda: None)
    monkeypatch.setattr(cache_module.cache, "redis_client", None)


@pytest.fixture
def disabled_cache():
    return Cache(client_factory=lambda: None)


@pytest.fixture
def notifier():
    return MagicMock()


def _user(db, uid, role, email):
    user = User(firebase_uid=uid, email=email, full_name=uid.title(), role=role)
    db.add(user)
    db.flush()
    return user


@pytest.fixture
def world(db):
    """Two providers with staff, two requesters, services and a Mon-Fri schedule"""
    provider = Provider(
        name="Little Steps Daycare",
        slug="little-steps",
        email="hello@littlesteps.test",
        status=ProviderStatus.APPROVED,
        default_slot_minutes=30,
    )
    other_provider = Provider(
        name="Harbor Pediatrics",
        slug="harbor-pediatrics",
        email="desk@harbor.test",
        status=ProviderStatus.APPROVED,
        default_slot_minutes=30,
    )
    pending_provider = Provider(
        name="Not Yet Approved", slug="not-yet", status=ProviderStatus.PENDING
    )
    db.add_all([provider, other_provider, pending_provider])
    db.flush()

    owner = _user(db, "owner", UserRole.PROVIDER, "owner@littlesteps.test")
    clinic_staff = _user(db, "frontdesk", UserRole.CLINIC_STAFF, "desk@littlesteps.test")
    other_owner = _user(db, "other-owner", UserRole.PROVIDER, "owner@harbor.test")
    orphan_staff = _user(db, "orphan", UserRole.CLINIC_STAFF, "orphan@nowhere.test")
    parent = _user(db, "parent", UserRole.PARENT, "parent@family.test")
    other_parent = _user(db, "other-parent", UserRole.PATIENT, "patient@family.test")

    db.add_all(
        [
            ProviderStaff(user_id=owner.id, provider_id=provider.id, role="owner"),
            ProviderStaff(user_id=clinic_staff.id, provider_id=provider.id, role="staff"),
            ProviderStaff(user_id=other_owner.id, provider_id=other_provider.id, role="owner"),
        ]
    )

    child = Dependent(requester_id=parent.id, first_name="Mia")
    other_child = Dependent(requester_id=other_parent.id, first_name="Leo")
    db.add_all([child, other_child])

    consult = Service(
        provider_id=provider.id, name="Telehealth consult", duration_minutes=60, is_remote=True
    )
    tour = Service(provider_id=provider.id, name="Tour", duration_minutes=45)
    retired = Service(provider_id=provider.id, name="Retired", is_active=False)
    db.add_all([consult, tour, retired])

    for day in range(5):
        db.add(ProviderSchedule(provider_id=provider.id, day_of_week=day))
    db.add(ProviderSchedule(provider_id=provider.id, day_of_week=5, is_closed=True))
    db.commit()

    return {
        "provider": provider,
        "other_provider": other_provider,
        "pending_provider": pending_provider,
        "owner": owner,
        "clinic_staff": clinic_staff,
        "other_owner": other_owner,
        "orphan_staff": orphan_staff,
        "parent": parent,
        "other_parent": other_parent,
        "child": child,
        "other_child": other_child,
        "consult": consult,
        "tour": tour,
        "retired": retired,
    }


@pytest.fixture
def make_booking(db):
    def _make(provider, requester, scheduled_at, status=BookingStatus.PENDING, **fields):
        booking = Booking(
            provider_id=provider.id,
            requester_id=requester.id,
            scheduled_at=scheduled_at,
            status=status,
            duration_minutes=fields.pop("duration_minutes", 30),
            **fields,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make


@pytest.fixture
def actions(db, disabled_cache, notifier):
    return BookingActions(db, disabled_cache, notifier)


@pytest.fixture
def as_user():
    """Switch the authenticated user of HTTP requests"""
    current = {"user": None}
    app.dependency_overrides[get_current_user] = lambda: current["user"]

    def _set(user):
        current["user"] = user

    yield _set
    app.dependency_overrides.pop(get_current_user, None)


@pytest_asyncio.fixture
async def client(db, notifier, as_user):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[rate_limit_booking_writes] = lambda: None
    app.dependency_overrides[get_booking_actions] = lambda: BookingActions(
        db, cache_module.cache, notifier
    )

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c

    app.dependency_overrides.clear()
