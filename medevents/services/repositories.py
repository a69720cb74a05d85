"""
Repository layer over the eligibility store (bookings, scans, feedback, certificates).
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Set

from sqlalchemy import func
from sqlalchemy.orm import Session

from medevents.models import (
    Booking,
    Certificate,
    Event,
    EventQRCode,
    FeedbackForm,
    FeedbackResponse,
    QRCodeScan,
    User,
)
from medevents.models.booking import BOOKING_ATTENDED, BOOKING_CANCELLED


# -------- Event repository --------

class EventRepo:
    @staticmethod
    def get(db: Session, event_id: int) -> Optional[Event]:
        return db.query(Event).filter(Event.id == event_id).first()

    @staticmethod
    def list_sweep_candidates(db: Session, not_before) -> List[Event]:
        """Events with auto certificates not gated by feedback and not yet swept"""
        return db.query(Event).filter(
            Event.auto_generate_certificate == True,
            Event.feedback_required_for_certificate == False,
            Event.certificate_template_id.isnot(None),
            Event.certificates_swept_at.is_(None),
            Event.date >= not_before,
        ).order_by(Event.date).all()

    @staticmethod
    def mark_swept(db: Session, event: Event) -> None:
        event.certificates_swept_at = datetime.utcnow()
        db.commit()

    @staticmethod
    def list_feedback_invite_candidates(db: Session, not_before) -> List[Event]:
        """Feedback-enabled events whose post-event invites have not gone out"""
        return db.query(Event).filter(
            Event.feedback_enabled == True,
            Event.feedback_invites_sent_at.is_(None),
            Event.date >= not_before,
        ).order_by(Event.date).all()

    @staticmethod
    def mark_feedback_invites_sent(db: Session, event: Event) -> None:
        event.feedback_invites_sent_at = datetime.utcnow()
        db.commit()


# -------- User repository --------

class UserRepo:
    @staticmethod
    def get(db: Session, user_id: int) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()


# -------- Booking repository --------

class BookingRepo:
    @staticmethod
    def find_active(db: Session, event_id: int, user_id: int) -> Optional[Booking]:
        return db.query(Booking).filter(
            Booking.event_id == event_id,
            Booking.user_id == user_id,
            Booking.status != BOOKING_CANCELLED,
        ).first()

    @staticmethod
    def create_attended(db: Session, event_id: int, user_id: int) -> Booking:
        now = datetime.utcnow()
        booking = Booking(
            event_id=event_id,
            user_id=user_id,
            status=BOOKING_ATTENDED,
            checked_in=True,
            checked_in_at=now,
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def mark_checked_in(db: Session, booking: Booking) -> None:
        booking.checked_in = True
        booking.checked_in_at = datetime.utcnow()
        booking.status = BOOKING_ATTENDED
        db.commit()

    @staticmethod
    def mark_feedback_completed(db: Session, booking_id: int) -> None:
        db.query(Booking).filter(Booking.id == booking_id).update({"feedback_completed": True})
        db.commit()

    @staticmethod
    def reload(db: Session, booking_id: int) -> Optional[Booking]:
        booking = db.query(Booking).filter(Booking.id == booking_id).first()
        if booking is not None:
            db.refresh(booking)
        return booking

    @staticmethod
    def checked_in_user_ids(db: Session, event_id: int) -> Set[int]:
        rows = db.query(Booking.user_id).filter(
            Booking.event_id == event_id,
            Booking.checked_in == True,
            Booking.status != BOOKING_CANCELLED,
            Booking.user_id.isnot(None),
        ).all()
        return {row.user_id for row in rows}


# -------- Attendance (QR) repository --------

class AttendanceRepo:
    @staticmethod
    def latest_qr_code(db: Session, event_id: int) -> Optional[EventQRCode]:
        return db.query(EventQRCode).filter(
            EventQRCode.event_id == event_id
        ).order_by(EventQRCode.created_at.desc(), EventQRCode.id.desc()).first()

    @staticmethod
    def has_successful_scan(db: Session, event_id: int, user_id: int) -> bool:
        return db.query(QRCodeScan.id).join(EventQRCode).filter(
            EventQRCode.event_id == event_id,
            QRCodeScan.user_id == user_id,
            QRCodeScan.scan_success == True,
        ).first() is not None

    @staticmethod
    def successful_scan_for_code(db: Session, qr_code_id: int, user_id: int) -> Optional[QRCodeScan]:
        return db.query(QRCodeScan).filter(
            QRCodeScan.qr_code_id == qr_code_id,
            QRCodeScan.user_id == user_id,
            QRCodeScan.scan_success == True,
        ).order_by(QRCodeScan.scanned_at.desc()).first()

    @staticmethod
    def record_scan(
        db: Session,
        qr_code_id: int,
        user_id: int,
        success: bool,
        booking_id: Optional[int] = None,
        failure_reason: Optional[str] = None,
    ) -> QRCodeScan:
        scan = QRCodeScan(
            qr_code_id=qr_code_id,
            user_id=user_id,
            booking_id=booking_id,
            scan_success=success,
            failure_reason=failure_reason,
            scanned_at=datetime.utcnow(),
        )
        db.add(scan)
        db.commit()
        db.refresh(scan)
        return scan

    @staticmethod
    def scanned_user_ids(db: Session, event_id: int) -> Set[int]:
        rows = db.query(QRCodeScan.user_id).join(EventQRCode).filter(
            EventQRCode.event_id == event_id,
            QRCodeScan.scan_success == True,
        ).distinct().all()
        return {row.user_id for row in rows}

    @staticmethod
    def first_successful_scans(db: Session, event_id: int) -> dict:
        """user_id -> earliest successful scan time"""
        rows = db.query(QRCodeScan.user_id, func.min(QRCodeScan.scanned_at).label("first_scan")).join(EventQRCode).filter(
            EventQRCode.event_id == event_id,
            QRCodeScan.scan_success == True,
        ).group_by(QRCodeScan.user_id).all()
        return {row.user_id: row.first_scan for row in rows}


# -------- Feedback repository --------

class FeedbackRepo:
    @staticmethod
    def get_active_form(db: Session, form_id: int) -> Optional[FeedbackForm]:
        return db.query(FeedbackForm).filter(
            FeedbackForm.id == form_id,
            FeedbackForm.active == True,
        ).first()

    @staticmethod
    def find_response(db: Session, form_id: int, user_id: int) -> Optional[FeedbackResponse]:
        return db.query(FeedbackResponse).filter(
            FeedbackResponse.form_id == form_id,
            FeedbackResponse.user_id == user_id,
        ).first()

    @staticmethod
    def insert_response(
        db: Session,
        form_id: int,
        event_id: int,
        user_id: Optional[int],
        booking_id: Optional[int],
        answers: dict,
    ) -> FeedbackResponse:
        response = FeedbackResponse(
            form_id=form_id,
            event_id=event_id,
            user_id=user_id,
            booking_id=booking_id,
            answers=answers,
            completed_at=datetime.utcnow(),
        )
        db.add(response)
        db.commit()
        db.refresh(response)
        return response

    @staticmethod
    def has_active_form_for_event(db: Session, event_id: int) -> bool:
        return db.query(FeedbackForm.id).filter(
            FeedbackForm.event_id == event_id,
            FeedbackForm.active == True,
        ).first() is not None

    @staticmethod
    def responded_user_ids(db: Session, event_id: int) -> Set[int]:
        rows = db.query(FeedbackResponse.user_id).filter(
            FeedbackResponse.event_id == event_id,
            FeedbackResponse.user_id.isnot(None),
        ).all()
        return {row.user_id for row in rows}

    @staticmethod
    def list_responses(db: Session, form_id: int) -> List[FeedbackResponse]:
        return db.query(FeedbackResponse).filter(
            FeedbackResponse.form_id == form_id
        ).order_by(FeedbackResponse.completed_at).all()


# -------- Certificate ledger --------

class CertificateRepo:
    @staticmethod
    def find(db: Session, event_id: int, user_id: int) -> Optional[Certificate]:
        return db.query(Certificate).filter(
            Certificate.event_id == event_id,
            Certificate.user_id == user_id,
        ).first()

    @staticmethod
    def insert(db: Session, **fields) -> Certificate:
        certificate = Certificate(issued_at=datetime.utcnow(), **fields)
        db.add(certificate)
        db.commit()
        db.refresh(certificate)
        return certificate

    @staticmethod
    def issued_user_ids(db: Session, event_id: int) -> Set[int]:
        rows = db.query(Certificate.user_id).filter(Certificate.event_id == event_id).all()
        return {row.user_id for row in rows}

    @staticmethod
    def by_user(db: Session, event_id: int) -> dict:
        rows = db.query(Certificate).filter(Certificate.event_id == event_id).all()
        return {row.user_id: row for row in rows}
