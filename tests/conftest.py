"""
Shared pytest fixtures for all tests.

Every test gets its own SQLite file database, in-memory fakes for the
payment processor, calendar and notification collaborators, and factories
for experts, clients and appointments.
"""

import asyncio
import itertools
import json
import os
from datetime import datetime
from typing import Optional

import pytest
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

# Ensure test environment before the package reads its configuration
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

from care_booking.auth import get_current_user, get_optional_user  # noqa: E402
from care_booking.database import Base, get_db  # noqa: E402
from care_booking.dependencies import get_calendar, get_notifier, get_processor  # noqa: E402
from care_booking.domain.booking.state_machine import BookingStateMachine  # noqa: E402
from care_booking.domain.payments.processor import DestinationStatus, HoldResult, RefundRecord  # noqa: E402
from care_booking.exceptions import CalendarSyncError, ProcessorError, ValidationError  # noqa: E402
from care_booking.models import (  # noqa: E402
    Appointment,
    AppointmentStatus,
    ExpertAvailability,
    ExpertProfile,
    User,
)

# ============================================================================
# FAKE COLLABORATORS
# ============================================================================


class FakeProcessor:
    """In-memory payment processor; every call yields to the event loop once"""

    def __init__(self, charges_enabled: bool = True):
        self.charges_enabled = charges_enabled
        self.fail_hold = False
        self.fail_refund = False
        self.fail_status = False
        self.holds: list[dict] = []
        self.refunds: list[str] = []
        self._ids = itertools.count(1)

    async def create_hold(self, amount, destination_account, fee_amount, metadata):
        await asyncio.sleep(0)
        if self.fail_hold:
            raise ProcessorError("Payment hold failed: card declined")
        reference = f"pi_test_{next(self._ids)}"
        self.holds.append(
            {
                "reference": reference,
                "amount": amount,
                "destination": destination_account,
                "fee": fee_amount,
                "metadata": metadata,
            }
        )
        return HoldResult(reference=reference, client_token=f"{reference}_secret")

    async def refund(self, reference, amount=None, reason=""):
        await asyncio.sleep(0)
        self.refunds.append(reference)
        if self.fail_refund:
            raise ProcessorError("Refund failed: processor unavailable", hold_ref=reference)
        return RefundRecord(reference=f"re_{len(self.refunds)}", status="succeeded", amount=amount or 0)

    async def get_destination_status(self, destination_account):
        await asyncio.sleep(0)
        if self.fail_status:
            raise ProcessorError("Could not verify payout account")
        return DestinationStatus(charges_enabled=self.charges_enabled, payouts_enabled=self.charges_enabled)

    def parse_event(self, payload, signature):
        if signature != "valid-signature":
            raise ValidationError("Invalid webhook signature")
        return json.loads(payload)


class FakeCalendar:
    def __init__(self):
        self.fail = False
        self.busy: list = []
        self.created: list[int] = []
        self.deleted: list[str] = []

    async def create_event(self, expert_id, appointment):
        if self.fail:
            raise CalendarSyncError("Google Calendar unavailable")
        self.created.append(appointment.id)
        return {"event_id": f"evt_{appointment.id}", "meeting_link": f"https://meet.google.com/test-{appointment.id}"}

    async def delete_event(self, expert_id, event_id):
        if self.fail:
            raise CalendarSyncError("Google Calendar unavailable")
        self.deleted.append(event_id)
        return True

    async def get_busy_times(self, expert_id, start, end):
        if self.fail:
            raise CalendarSyncError("Google Calendar unavailable")
        return list(self.busy)


class FakeNotifier:
    def __init__(self):
        self.sent: list[tuple[str, int]] = []

    async def send_booking_confirmed(self, appointment, expert):
        self.sent.append(("confirmed", appointment.id))
        return True

    async def send_booking_cancelled(self, appointment, expert, refunded=False):
        self.sent.append(("cancelled", appointment.id))
        return True


# ============================================================================
# DATABASE FIXTURES
# ============================================================================


@pytest.fixture
def engine(tmp_path):
    """File-backed SQLite so separate sessions see each other's commits"""
    engine = create_engine(f"sqlite:///{tmp_path / 'test.db'}", connect_args={"check_same_thread": False})
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory) -> Session:
    session = session_factory()
    yield session
    session.close()


# ============================================================================
# DOMAIN FACTORIES
# ============================================================================


@pytest.fixture
def make_user(db):
    counter = itertools.count(1)

    def _make(role: str = "client", name: Optional[str] = None, tz: str = "UTC") -> User:
        n = next(counter)
        user = User(
            firebase_uid=f"uid-{role}-{n}",
            email=f"{role}{n}@example.com",
            full_name=name or f"{role.title()} {n}",
            role=role,
            timezone=tz,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


@pytest.fixture
def make_expert(db, make_user):
    def _make(
        verified: bool = True,
        allow_booking: bool = True,
        payout_account_id: Optional[str] = "acct_test_123",
        tz: str = "America/New_York",
    ) -> User:
        user = make_user(role="expert", tz=tz)
        db.add(
            ExpertProfile(
                user_id=user.id,
                verification_status="verified" if verified else "pending",
                allow_booking=allow_booking,
                payout_account_id=payout_account_id,
                timezone=tz,
            )
        )
        db.commit()
        return user

    return _make


@pytest.fixture
def expert(make_expert):
    return make_expert()


@pytest.fixture
def client_user(make_user):
    return make_user(role="client", name="Casey Client")


@pytest.fixture
def stranger(make_user):
    return make_user(role="client", name="Sam Stranger")


@pytest.fixture
def monday_window(db, expert):
    """Monday 09:00-12:00 America/New_York"""
    window = ExpertAvailability(
        expert_id=expert.id,
        day_of_week=1,
        start_time="09:00",
        end_time="12:00",
        timezone="America/New_York",
        is_active=True,
    )
    db.add(window)
    db.commit()
    return window


@pytest.fixture
def make_appointment(db):
    """Insert an appointment row directly, bypassing the booking flow"""
    counter = itertools.count(1)

    def _make(
        expert: User,
        client: Optional[User] = None,
        status: str = AppointmentStatus.CONFIRMED.value,
        scheduled_at: datetime = datetime(2030, 1, 7, 14, 0),
        duration: int = 60,
        total_amount: int = 10000,
        platform_fee: int = 1000,
    ) -> Appointment:
        n = next(counter)
        appointment = Appointment(
            expert_id=expert.id,
            client_id=client.id if client else None,
            client_name=client.full_name if client else "Guest",
            client_email=client.email if client else "guest@example.com",
            scheduled_at=scheduled_at,
            scheduled_at_timezone="America/New_York",
            duration=duration,
            status=status,
            total_amount=total_amount,
            platform_fee=platform_fee,
            expert_earnings=total_amount - platform_fee,
            payment_hold_ref=f"pi_seed_{n}",
            payout_destination_ref="acct_test_123",
        )
        db.add(appointment)
        db.commit()
        db.refresh(appointment)
        return appointment

    return _make


# ============================================================================
# COLLABORATOR FIXTURES
# ============================================================================


@pytest.fixture
def processor():
    return FakeProcessor()


@pytest.fixture
def calendar():
    return FakeCalendar()


@pytest.fixture
def notifier():
    return FakeNotifier()


@pytest.fixture
def machine(db, processor, calendar, notifier) -> BookingStateMachine:
    return BookingStateMachine(db, processor, calendar=calendar, notifier=notifier)


# ============================================================================
# API FIXTURES
# ============================================================================


@pytest.fixture
def api(session_factory, processor, calendar, notifier):
    """
    TestClient wired to the per-test database and fakes.

    ``api.login(user)`` authenticates subsequent requests as that user;
    ``api.logout()`` makes them anonymous.
    """
    from care_booking.main import app

    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    state = {"user_id": None}

    def override_current_user(session: Session = Depends(get_db)) -> User:
        if state["user_id"] is None:
            from fastapi import HTTPException

            raise HTTPException(status_code=401, detail="Not authenticated")
        return session.get(User, state["user_id"])

    def override_optional_user(session: Session = Depends(get_db)) -> Optional[User]:
        if state["user_id"] is None:
            return None
        return session.get(User, state["user_id"])

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_processor] = lambda: processor
    app.dependency_overrides[get_calendar] = lambda: calendar
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_current_user] = override_current_user
    app.dependency_overrides[get_optional_user] = override_optional_user

    client = TestClient(app)
    client.login = lambda user: state.update(user_id=user.id)
    client.logout = lambda: state.update(user_id=None)
    yield client
    app.dependency_overrides.clear()
