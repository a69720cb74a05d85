"""
Tests for QR attendance check-in and the QR-triggered certificate workflow
"""

import asyncio
import pytest
from datetime import date, datetime, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from medevents.core.db import Base
from medevents.core.identity import ANONYMOUS, Caller
from medevents.exceptions import QRCodeNotFound, ScanRejected, Unauthorized
from medevents.models import Booking, Event, EventQRCode, QRCodeScan, User
from medevents.models.booking import BOOKING_ATTENDED, BOOKING_CONFIRMED
from medevents.services.attendance_service import AttendanceVerifier
from medevents.services.certificate_issuer import IssuedCertificate, LocalCertificateIssuer
from medevents.services.checkin_service import CheckInService, parse_event_id
from medevents.services.outbox import NOTIFY_FEEDBACK_INVITE, IssueCertificate, Notify, OutboxDispatcher

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_checkin.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


class FakeWebSocketManager:
    def __init__(self):
        self.messages = []

    async def broadcast_to_event(self, event_id, message):
        self.messages.append((event_id, message))


class FakeIssuer:
    def __init__(self):
        self.calls = []

    def issue(self, **kwargs):
        self.calls.append(kwargs)
        return IssuedCertificate(f"CERT-TEST-{len(self.calls)}", True)


class FakeNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, kind, payload):
        self.sent.append((kind, payload))


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
def ws_manager():
    return FakeWebSocketManager()

@pytest.fixture
def service(ws_manager):
    return CheckInService(ws_manager)

@pytest.fixture
def student(db_session):
    user = User(name="Sam Student", email="sam@example.com", role="student")
    db_session.add(user)
    db_session.commit()
    return Caller(user.id, user.role)

def make_event(db, **flags):
    flags.setdefault("qr_attendance_enabled", True)
    event = Event(title="Resus Skills", date=date(2024, 6, 15), **flags)
    db.add(event)
    db.commit()
    return event

def open_qr_code(db, event, active=True, starts=-1, ends=1):
    now = datetime.utcnow()
    qr_code = EventQRCode(
        event_id=event.id,
        code=f"code-{event.id}",
        active=active,
        scan_window_start=now + timedelta(hours=starts),
        scan_window_end=now + timedelta(hours=ends),
    )
    db.add(qr_code)
    db.commit()
    return qr_code

def scan(service, db, caller, **kwargs):
    return asyncio.run(service.scan(db, caller, **kwargs))

class TestParseEventId:

    def test_url_with_event_param(self):
        assert parse_event_id("https://events.example.com/attendance/scan?event=42&code=abc") == 42

    def test_bare_id(self):
        assert parse_event_id(" 17 ") == 17

    def test_garbage_rejected(self):
        with pytest.raises(ScanRejected):
            parse_event_id("https://events.example.com/attendance/scan?code=abc")

class TestScan:
    """Recording scans"""

    def test_requires_signed_in_caller(self, db_session, service):
        event = make_event(db_session)
        open_qr_code(db_session, event)
        with pytest.raises(Unauthorized):
            scan(service, db_session, ANONYMOUS, event_id=event.id)

    def test_event_without_qr_code(self, db_session, service, student):
        event = make_event(db_session)
        with pytest.raises(QRCodeNotFound):
            scan(service, db_session, student, event_id=event.id)

    def test_successful_scan_records_and_broadcasts(self, db_session, service, ws_manager, student):
        event = make_event(db_session)
        open_qr_code(db_session, event)

        result = scan(service, db_session, student, qr_code_data=f"http://localhost/attendance/scan?event={event.id}")

        assert not result.duplicate
        assert result.has_booking is False
        assert result.message == "Attendance recorded successfully"
        assert db_session.query(QRCodeScan).filter(QRCodeScan.scan_success == True).count() == 1
        assert ws_manager.messages[0][0] == event.id
        assert ws_manager.messages[0][1]["type"] == "attendance"
        assert AttendanceVerifier.is_attendee(db_session, event, student).attended

    def test_existing_booking_is_checked_in(self, db_session, service, student):
        event = make_event(db_session, booking_enabled=True)
        open_qr_code(db_session, event)
        booking = Booking(event_id=event.id, user_id=student.user_id, status=BOOKING_CONFIRMED)
        db_session.add(booking)
        db_session.commit()

        result = scan(service, db_session, student, event_id=event.id)

        db_session.refresh(booking)
        assert result.has_booking is True
        assert result.message == "Attendance marked successfully"
        assert booking.checked_in is True
        assert booking.status == BOOKING_ATTENDED

    def test_duplicate_scan(self, db_session, service, ws_manager, student):
        event = make_event(db_session)
        open_qr_code(db_session, event)

        scan(service, db_session, student, event_id=event.id)
        result = scan(service, db_session, student, event_id=event.id)

        assert result.duplicate
        assert result.actions == []
        assert result.details()["duplicate"] is True
        assert len(ws_manager.messages) == 1
        assert db_session.query(QRCodeScan).count() == 1

    def test_inactive_code_rejected_and_logged(self, db_session, service, student):
        event = make_event(db_session)
        open_qr_code(db_session, event, active=False)

        with pytest.raises(ScanRejected) as exc_info:
            scan(service, db_session, student, event_id=event.id)

        assert exc_info.value.message == "QR code is inactive"
        failed = db_session.query(QRCodeScan).one()
        assert failed.scan_success is False
        assert not AttendanceVerifier.is_attendee(db_session, event, student).attended

    def test_scan_after_window_rejected(self, db_session, service, student):
        event = make_event(db_session)
        qr_code = open_qr_code(db_session, event)

        with pytest.raises(ScanRejected) as exc_info:
            scan(service, db_session, student, event_id=event.id, now=qr_code.scan_window_end + timedelta(minutes=1))

        assert exc_info.value.message == "QR code scanning has expired"
        assert "scanWindowEnd" in exc_info.value.details

    def test_scan_before_window_rejected(self, db_session, service, student):
        event = make_event(db_session)
        open_qr_code(db_session, event, starts=1, ends=3)

        with pytest.raises(ScanRejected) as exc_info:
            scan(service, db_session, student, event_id=event.id)

        assert exc_info.value.message == "QR code scanning is not yet active"

    def test_feedback_invite_queued_when_feedback_enabled(self, db_session, service, student):
        event = make_event(db_session, feedback_enabled=True)
        open_qr_code(db_session, event)

        result = scan(service, db_session, student, event_id=event.id)

        assert Notify(NOTIFY_FEEDBACK_INVITE, {"event_id": event.id, "user_id": student.user_id}) in result.actions
        assert result.details()["feedbackEmailSent"] is True

    def test_no_invite_when_feedback_disabled(self, db_session, service, student):
        event = make_event(db_session, feedback_enabled=False)
        open_qr_code(db_session, event)

        result = scan(service, db_session, student, event_id=event.id)

        assert result.actions == []

class TestQRTriggeredCertificates:
    """Workflow B, and Workflow C re-evaluated on check-in"""

    def test_scan_alone_triggers_issuance(self, db_session, service, student):
        event = make_event(
            db_session,
            feedback_enabled=False,
            auto_generate_certificate=True,
            certificate_template_id="tpl-resus",
        )
        open_qr_code(db_session, event)
        issuer = FakeIssuer()

        result = scan(service, db_session, student, event_id=event.id)
        report = OutboxDispatcher(issuer, FakeNotifier()).dispatch(result.actions)

        assert report.certificate_issued
        assert len(issuer.calls) == 1
        booking = db_session.query(Booking).one()
        assert issuer.calls[0]["booking_id"] == booking.id
        assert issuer.calls[0]["workflow"] == "qr_scan"

    def test_booking_required_but_missing_skips(self, db_session, service, student):
        event = make_event(
            db_session,
            booking_enabled=True,
            feedback_enabled=False,
            auto_generate_certificate=True,
            certificate_template_id="tpl-resus",
        )
        open_qr_code(db_session, event)

        result = scan(service, db_session, student, event_id=event.id)

        assert result.actions == []
        assert db_session.query(Booking).count() == 0

    def test_feedback_gated_issues_when_check_in_completes_the_pair(self, db_session, service, student):
        event = make_event(
            db_session,
            booking_enabled=True,
            feedback_enabled=False,
            auto_generate_certificate=True,
            certificate_template_id="tpl-resus",
            feedback_required_for_certificate=True,
        )
        open_qr_code(db_session, event)
        db_session.add(Booking(
            event_id=event.id, user_id=student.user_id, status=BOOKING_CONFIRMED, feedback_completed=True
        ))
        db_session.commit()

        result = scan(service, db_session, student, event_id=event.id)

        issue_actions = [a for a in result.actions if isinstance(a, IssueCertificate)]
        assert len(issue_actions) == 1
        assert issue_actions[0].workflow == "qr_scan"

    def test_feedback_gated_waits_for_feedback(self, db_session, service, student):
        event = make_event(
            db_session,
            feedback_enabled=False,
            auto_generate_certificate=True,
            certificate_template_id="tpl-resus",
            feedback_required_for_certificate=True,
        )
        open_qr_code(db_session, event)

        result = scan(service, db_session, student, event_id=event.id)

        assert result.actions == []

    def test_regenerated_code_does_not_announce_certificate_twice(self, db_session, service, student):
        event = make_event(
            db_session,
            feedback_enabled=False,
            auto_generate_certificate=True,
            certificate_template_id="tpl-resus",
            certificate_auto_send_email=True,
        )
        open_qr_code(db_session, event)
        notifier = FakeNotifier()
        dispatcher = OutboxDispatcher(LocalCertificateIssuer(db_session), notifier)

        first = dispatcher.dispatch(scan(service, db_session, student, event_id=event.id).actions)

        now = datetime.utcnow()
        db_session.add(EventQRCode(
            event_id=event.id,
            code=f"code-{event.id}-second",
            scan_window_start=now - timedelta(hours=1),
            scan_window_end=now + timedelta(hours=1),
        ))
        db_session.commit()
        result = scan(service, db_session, student, event_id=event.id)
        second = dispatcher.dispatch(result.actions)

        assert not result.duplicate
        assert first.certificate_issued
        assert not second.certificate_issued
        assert second.already_issued == first.issued
        issued = [payload for kind, payload in notifier.sent if kind == "certificate_issued"]
        assert len(issued) == 1
