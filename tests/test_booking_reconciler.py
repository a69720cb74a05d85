"""
Tests for the booking reconciler
"""

import pytest
from datetime import date
from sqlalchemy import create_engine
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import sessionmaker

from medevents.core.db import Base
from medevents.exceptions import StorageFailure
from medevents.models import Booking, Event, User
from medevents.models.booking import BOOKING_ATTENDED, BOOKING_CANCELLED, BOOKING_CONFIRMED
from medevents.services.booking_reconciler import BookingReconciler
from medevents.services.repositories import BookingRepo

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_reconciler.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

@pytest.fixture
def db_session():
    """Create test database session"""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=engine)

@pytest.fixture
def event_and_user(db_session):
    event = Event(title="Grand Round", date=date(2024, 6, 15))
    user = User(name="Riley Resident", email="riley@example.com")
    db_session.add_all([event, user])
    db_session.commit()
    return event, user

def booking_count(db, event_id, user_id):
    return db.query(Booking).filter(
        Booking.event_id == event_id,
        Booking.user_id == user_id,
        Booking.status != BOOKING_CANCELLED
    ).count()

class TestEnsureBooking:
    """Find-or-create of the booking anchor"""

    def test_returns_existing_booking(self, db_session, event_and_user):
        event, user = event_and_user
        existing = Booking(event_id=event.id, user_id=user.id, status=BOOKING_CONFIRMED)
        db_session.add(existing)
        db_session.commit()

        booking = BookingReconciler.ensure_booking(db_session, event.id, user.id)

        assert booking.id == existing.id
        assert booking.status == BOOKING_CONFIRMED
        assert booking_count(db_session, event.id, user.id) == 1

    def test_creates_attended_booking(self, db_session, event_and_user):
        event, user = event_and_user

        booking = BookingReconciler.ensure_booking(db_session, event.id, user.id)

        assert booking.status == BOOKING_ATTENDED
        assert booking.checked_in is True
        assert booking.checked_in_at is not None
        assert booking.feedback_completed is False

    def test_cancelled_booking_is_not_reused(self, db_session, event_and_user):
        event, user = event_and_user
        cancelled = Booking(event_id=event.id, user_id=user.id, status=BOOKING_CANCELLED)
        db_session.add(cancelled)
        db_session.commit()

        booking = BookingReconciler.ensure_booking(db_session, event.id, user.id)

        assert booking.id != cancelled.id
        assert booking_count(db_session, event.id, user.id) == 1

    def test_lost_race_uses_winner_row(self, db_session, event_and_user, monkeypatch):
        event, user = event_and_user

        # Another request commits its booking between our read and our insert
        winner_session = TestingSessionLocal()
        winner = BookingReconciler.ensure_booking(winner_session, event.id, user.id)
        winner_id = winner.id
        winner_session.close()

        original_find_active = BookingRepo.find_active
        calls = []

        def stale_first_read(db, event_id, user_id):
            calls.append(event_id)
            if len(calls) == 1:
                return None
            return original_find_active(db, event_id, user_id)

        monkeypatch.setattr(BookingRepo, "find_active", staticmethod(stale_first_read))

        booking = BookingReconciler.ensure_booking(db_session, event.id, user.id)

        assert booking.id == winner_id
        assert len(calls) == 2
        assert booking_count(db_session, event.id, user.id) == 1

    def test_storage_error_becomes_storage_failure(self, db_session, event_and_user, monkeypatch):
        event, user = event_and_user

        def broken(db, event_id, user_id):
            raise OperationalError("INSERT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(BookingRepo, "create_attended", staticmethod(broken))

        with pytest.raises(StorageFailure) as exc_info:
            BookingReconciler.ensure_booking(db_session, event.id, user.id)
        assert "certificate eligibility could not be established" in str(exc_info.value)

        assert BookingReconciler.try_ensure_booking(db_session, event.id, user.id) is None
