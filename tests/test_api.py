"""
Tests for the HTTP endpoints
"""

import asyncio
import pytest
from datetime import date, datetime, timedelta
from fastapi import Depends
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from main import app
from medevents.api.deps import get_dispatcher, rate_limited
from medevents.core.config import settings
from medevents.core.db import Base, get_db
from medevents.models import Booking, Certificate, Event, EventQRCode, FeedbackForm, User
from medevents.models.booking import BOOKING_CONFIRMED
from medevents.services.certificate_issuer import LocalCertificateIssuer
from medevents.services.outbox import DispatchReport, OutboxDispatcher

# Test database setup
SQLALCHEMY_DATABASE_URL = "sqlite:///./test_api.db"
engine = create_engine(SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

QUESTIONS = [
    {"id": "q1", "text": "Overall rating", "type": "rating", "scale": 5, "required": True},
    {"id": "q2", "text": "Key takeaway", "type": "long_text", "required": True},
]


class NullNotifier:
    def notify(self, kind, payload):
        pass


class LoopCheckingDispatcher:
    """Records whether dispatch ran on the event loop thread"""

    def __init__(self):
        self.on_event_loop = []

    def dispatch(self, actions):
        try:
            asyncio.get_running_loop()
            self.on_event_loop.append(True)
        except RuntimeError:
            self.on_event_loop.append(False)
        return DispatchReport()


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()

def override_get_dispatcher(db: Session = Depends(get_db)):
    return OutboxDispatcher(LocalCertificateIssuer(db), NullNotifier())

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
def client(db_session):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dispatcher] = override_get_dispatcher
    app.dependency_overrides[rate_limited] = lambda: None
    yield TestClient(app)
    app.dependency_overrides.clear()

@pytest.fixture
def student_id(db_session):
    user = User(name="Sam Student", email="sam@example.com", role="student")
    db_session.add(user)
    db_session.commit()
    return user.id

@pytest.fixture
def admin_headers():
    return {"Authorization": f"Bearer {settings.ADMIN_TOKEN}"}

def make_event_with_form(db, **flags):
    event = Event(title="Neuro Update", date=date(2024, 6, 15), **flags)
    db.add(event)
    db.commit()
    form = FeedbackForm(event_id=event.id, title="Neuro feedback", questions=QUESTIONS)
    db.add(form)
    db.commit()
    return event, form

def submit(client, event, form, answers, user_id=None):
    headers = {"X-User-Id": str(user_id)} if user_id else {}
    return client.post(
        "/feedback/submit",
        json={"formId": form.id, "eventId": event.id, "answers": answers},
        headers=headers,
    )

def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}

class TestFeedbackEndpoint:

    def test_successful_submission(self, client, db_session, student_id):
        event, form = make_event_with_form(db_session)

        response = submit(client, event, form, {"q1": 4, "q2": "Stroke pathways"}, student_id)

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["certificateTriggered"] is False
        assert isinstance(body["data"]["responseId"], int)

    def test_validation_errors_listed(self, client, db_session, student_id):
        event, form = make_event_with_form(db_session)

        response = submit(client, event, form, {"q1": 6}, student_id)

        assert response.status_code == 422
        body = response.json()
        assert body["success"] is False
        assert body["error_code"] == "validation_failed"
        assert body["details"] == [
            'Rating for "Overall rating" must be between 1 and 5',
            'Question "Key takeaway" is required',
        ]

    def test_attendance_required_names_requirement(self, client, db_session, student_id):
        event, form = make_event_with_form(db_session, booking_enabled=True)

        response = submit(client, event, form, {"q1": 4, "q2": "x"}, student_id)

        assert response.status_code == 403
        body = response.json()
        assert body["error_code"] == "attendance_required"
        assert body["details"] == {"reason": "no_booking"}

    def test_anonymous_caller_on_named_form(self, client, db_session):
        event, form = make_event_with_form(db_session)

        response = submit(client, event, form, {"q1": 4, "q2": "x"})

        assert response.status_code == 401
        assert response.json()["error_code"] == "unauthorized"

    def test_duplicate_submission(self, client, db_session, student_id):
        event, form = make_event_with_form(db_session)

        assert submit(client, event, form, {"q1": 4, "q2": "x"}, student_id).status_code == 200
        response = submit(client, event, form, {"q1": 5, "q2": "y"}, student_id)

        assert response.status_code == 409
        assert response.json()["error_code"] == "already_submitted"

    def test_feedback_gated_certificate(self, client, db_session, student_id):
        event, form = make_event_with_form(
            db_session,
            booking_enabled=True,
            auto_generate_certificate=True,
            certificate_template_id="tpl-neuro",
            feedback_required_for_certificate=True,
        )
        db_session.add(Booking(event_id=event.id, user_id=student_id, status=BOOKING_CONFIRMED, checked_in=True))
        db_session.commit()

        response = submit(client, event, form, {"q1": 5, "q2": "Thrombolysis"}, student_id)

        assert response.status_code == 200
        assert response.json()["data"]["certificateTriggered"] is True
        assert db_session.query(Certificate).filter(Certificate.user_id == student_id).count() == 1

    def test_submission_runs_off_the_event_loop(self, client, db_session, student_id):
        event, form = make_event_with_form(db_session)
        dispatcher = LoopCheckingDispatcher()
        app.dependency_overrides[get_dispatcher] = lambda: dispatcher

        response = submit(client, event, form, {"q1": 4, "q2": "Stroke pathways"}, student_id)

        assert response.status_code == 200
        assert dispatcher.on_event_loop == [False]

class TestAttendanceEndpoint:

    def test_scan_marks_attendance(self, client, db_session, student_id):
        event = Event(title="Neuro Update", date=date(2024, 6, 15), qr_attendance_enabled=True, feedback_enabled=False)
        db_session.add(event)
        db_session.commit()
        now = datetime.utcnow()
        db_session.add(EventQRCode(
            event_id=event.id,
            code="api-scan",
            scan_window_start=now - timedelta(hours=1),
            scan_window_end=now + timedelta(hours=1),
        ))
        db_session.commit()

        response = client.post(
            "/attendance/scan",
            json={"qrCodeData": f"http://localhost:8000/attendance/scan?event={event.id}&code=api-scan"},
            headers={"X-User-Id": str(student_id)},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["message"] == "Attendance recorded successfully"
        assert body["data"]["eventId"] == event.id

    def test_dispatch_runs_off_the_event_loop(self, client, db_session, student_id):
        event = Event(title="Neuro Update", date=date(2024, 6, 15), qr_attendance_enabled=True)
        db_session.add(event)
        db_session.commit()
        now = datetime.utcnow()
        db_session.add(EventQRCode(
            event_id=event.id,
            code="api-loop",
            scan_window_start=now - timedelta(hours=1),
            scan_window_end=now + timedelta(hours=1),
        ))
        db_session.commit()
        dispatcher = LoopCheckingDispatcher()
        app.dependency_overrides[get_dispatcher] = lambda: dispatcher

        response = client.post("/attendance/scan", json={"eventId": event.id}, headers={"X-User-Id": str(student_id)})

        assert response.status_code == 200
        assert dispatcher.on_event_loop == [False]

    def test_scan_without_qr_code(self, client, db_session, student_id):
        event = Event(title="Neuro Update", date=date(2024, 6, 15))
        db_session.add(event)
        db_session.commit()

        response = client.post("/attendance/scan", json={"eventId": event.id}, headers={"X-User-Id": str(student_id)})

        assert response.status_code == 404
        assert response.json()["error_code"] == "qr_code_not_found"

class TestAdminEndpoints:

    def test_requires_admin_token(self, client):
        response = client.post("/admin/events", json={"title": "X", "date": "2024-06-15"})
        assert response.status_code in (401, 403)

    def test_event_form_and_responses(self, client, db_session, student_id, admin_headers):
        created = client.post("/admin/events", json={"title": "Derm Day", "date": "2024-06-15"}, headers=admin_headers)
        assert created.status_code == 201
        event_id = created.json()["data"]["id"]
        assert created.json()["data"]["feedback_enabled"] is True

        form = client.post(
            "/admin/feedback-forms",
            json={"title": "Derm feedback", "event_id": event_id, "questions": QUESTIONS},
            headers=admin_headers,
        )
        assert form.status_code == 201
        form_id = form.json()["data"]["id"]

        submitted = client.post(
            "/feedback/submit",
            json={"formId": form_id, "eventId": event_id, "answers": {"q1": 3, "q2": "Melanoma"}},
            headers={"X-User-Id": str(student_id)},
        )
        assert submitted.status_code == 200

        responses = client.get(f"/admin/feedback-forms/{form_id}/responses", headers=admin_headers)
        assert responses.status_code == 200
        data = responses.json()["data"]
        assert data["total"] == 1
        assert data["responses"][0]["answers"] == {"q1": 3, "q2": "Melanoma"}

        details = client.get(f"/admin/events/{event_id}", headers=admin_headers).json()["data"]
        assert details["feedback_count"] == 1
        assert details["total_bookings"] == 1

    def test_qr_code_and_exports(self, client, db_session, admin_headers):
        created = client.post(
            "/admin/events",
            json={"title": "Ortho", "date": "2024-06-15", "qr_attendance_enabled": True},
            headers=admin_headers,
        )
        event_id = created.json()["data"]["id"]

        qr = client.post(
            f"/admin/events/{event_id}/qr-codes",
            json={"scan_window_start": "2024-06-15T08:00:00", "scan_window_end": "2024-06-15T18:00:00"},
            headers=admin_headers,
        )
        assert qr.status_code == 201
        assert f"event={event_id}" in qr.json()["data"]["scan_url"]

        image = client.get(f"/attendance/events/{event_id}/qr.png", headers=admin_headers)
        assert image.status_code == 200
        assert image.headers["content-type"] == "image/png"

        export = client.get(f"/admin/events/{event_id}/attendance.xlsx", headers=admin_headers)
        assert export.status_code == 200
        assert export.content[:2] == b"PK"

    def test_qr_window_must_be_ordered(self, client, db_session, admin_headers):
        event_id = client.post(
            "/admin/events", json={"title": "Ortho", "date": "2024-06-15"}, headers=admin_headers
        ).json()["data"]["id"]

        response = client.post(
            f"/admin/events/{event_id}/qr-codes",
            json={"scan_window_start": "2024-06-15T18:00:00", "scan_window_end": "2024-06-15T08:00:00"},
            headers=admin_headers,
        )
        assert response.status_code == 422

class TestJobsEndpoint:

    def test_sweep_requires_secret(self, client):
        response = client.post("/jobs/certificates/sweep")
        assert response.status_code == 401

    def test_sweep_with_cron_secret(self, client, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")

        response = client.post("/jobs/certificates/sweep", headers={"X-Cron-Secret": "s3cret"})

        assert response.status_code == 200
        assert response.json()["data"]["events_processed"] == 0

    def test_feedback_invites_with_cron_secret(self, client, db_session, student_id, monkeypatch):
        monkeypatch.setattr(settings, "CRON_SECRET", "s3cret")
        event, form = make_event_with_form(db_session, feedback_enabled=True)
        event.date = date.today() - timedelta(days=2)
        db_session.add(Booking(
            event_id=event.id, user_id=student_id, status=BOOKING_CONFIRMED, checked_in=True
        ))
        db_session.commit()

        response = client.post("/jobs/feedback-invites", headers={"X-Cron-Secret": "s3cret"})

        assert response.status_code == 200
        data = response.json()["data"]
        assert data["invites_sent"] == 1
        db_session.refresh(event)
        assert event.feedback_invites_sent_at is not None

    def test_feedback_invites_require_secret(self, client):
        response = client.post("/jobs/feedback-invites")
        assert response.status_code == 401
