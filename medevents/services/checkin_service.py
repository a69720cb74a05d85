"""
QR attendance check-in with real-time broadcasting
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional
from urllib.parse import parse_qs, urlparse

from sqlalchemy.orm import Session

from medevents.api.ws import WebSocketManager
from medevents.core.identity import Caller
from medevents.exceptions import EventNotFound, QRCodeNotFound, ScanRejected, Unauthorized
from medevents.models import Event
from medevents.services.attendance_service import AttendanceVerifier
from medevents.services.booking_reconciler import BookingReconciler
from medevents.services.certificate_gate import (
    CertificateFlags,
    Eligibility,
    Workflow,
    decide,
    plan_certificate,
)
from medevents.services.outbox import NOTIFY_FEEDBACK_INVITE, Action, Notify
from medevents.services.repositories import AttendanceRepo, BookingRepo, EventRepo

logger = logging.getLogger(__name__)


def parse_event_id(qr_code_data: str) -> int:
    """Extract the event id from a scanned attendance URL (``...?event=<id>``)"""
    value = qr_code_data.strip()
    if value.isdigit():
        return int(value)
    event_param = parse_qs(urlparse(value).query).get("event")
    if not event_param or not event_param[0].isdigit():
        raise ScanRejected("Invalid QR code")
    return int(event_param[0])


@dataclass
class ScanResult:
    event_id: int
    event_title: str
    event_date: str
    checked_in_at: datetime
    has_booking: bool
    duplicate: bool = False
    feedback_invite_queued: bool = False
    actions: List[Action] = field(default_factory=list)

    @property
    def message(self) -> str:
        if self.duplicate:
            return "Attendance already marked for this event"
        return "Attendance marked successfully" if self.has_booking else "Attendance recorded successfully"

    def details(self) -> dict:
        details = {
            "eventId": self.event_id,
            "eventTitle": self.event_title,
            "eventDate": self.event_date,
            "checkedInAt": self.checked_in_at.isoformat(),
            "hasBooking": self.has_booking,
        }
        if self.duplicate:
            details["duplicate"] = True
        else:
            details["feedbackEmailSent"] = self.feedback_invite_queued
        return details


class CheckInService:
    """Service for handling attendance scans"""

    def __init__(self, websocket_manager: WebSocketManager):
        self.websocket_manager = websocket_manager

    async def scan(
        self,
        db: Session,
        caller: Caller,
        qr_code_data: Optional[str] = None,
        event_id: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> ScanResult:
        """Record an attendance scan, broadcast it and plan follow-up actions"""
        if not caller.is_authenticated:
            raise Unauthorized("You must be signed in to mark attendance")

        if event_id is None:
            if not qr_code_data:
                raise ScanRejected("Missing required field: qrCodeData or eventId")
            event_id = parse_event_id(qr_code_data)

        event = EventRepo.get(db, event_id)
        if event is None:
            raise EventNotFound(event_id)

        qr_code = AttendanceRepo.latest_qr_code(db, event_id)
        if qr_code is None:
            raise QRCodeNotFound()

        now = now or datetime.utcnow()
        user_id = caller.user_id

        rejection = None
        details = None
        if not qr_code.active:
            rejection = "QR code is inactive"
        elif now < qr_code.scan_window_start:
            rejection = "QR code scanning is not yet active"
            details = {"scanWindowStart": qr_code.scan_window_start.isoformat(), "currentTime": now.isoformat()}
        elif now > qr_code.scan_window_end:
            rejection = "QR code scanning has expired"
            details = {"scanWindowEnd": qr_code.scan_window_end.isoformat(), "currentTime": now.isoformat()}
        if rejection:
            AttendanceRepo.record_scan(db, qr_code.id, user_id, success=False, failure_reason=rejection)
            logger.info(f"Scan rejected for event {event_id}, user {user_id}: {rejection}")
            raise ScanRejected(rejection, details=details)

        booking = BookingRepo.find_active(db, event_id, user_id)
        if booking is not None and not booking.checked_in:
            BookingRepo.mark_checked_in(db, booking)

        previous = AttendanceRepo.successful_scan_for_code(db, qr_code.id, user_id)
        if previous is not None:
            return ScanResult(
                event_id=event.id,
                event_title=event.title,
                event_date=event.date.isoformat(),
                checked_in_at=previous.scanned_at,
                has_booking=booking is not None,
                duplicate=True,
            )

        AttendanceRepo.record_scan(
            db, qr_code.id, user_id, success=True, booking_id=booking.id if booking else None
        )
        logger.info(f"Attendance recorded for event {event_id}, user {user_id}")

        await self.websocket_manager.broadcast_to_event(event_id, {
            "type": "attendance",
            "user_id": user_id,
            "has_booking": booking is not None,
            "timestamp": now.isoformat(),
        })

        actions: List[Action] = []
        if event.feedback_enabled:
            actions.append(Notify(NOTIFY_FEEDBACK_INVITE, {"event_id": event.id, "user_id": user_id}))
        actions.extend(self._plan_certificate(db, event, caller))

        return ScanResult(
            event_id=event.id,
            event_title=event.title,
            event_date=event.date.isoformat(),
            checked_in_at=now,
            has_booking=booking is not None,
            feedback_invite_queued=event.feedback_enabled,
            actions=actions,
        )

    @staticmethod
    def _plan_certificate(db: Session, event: Event, caller: Caller) -> List[Action]:
        flags = CertificateFlags.from_event(event)
        if not flags.auto_generate_certificate:
            return []

        attendance = AttendanceVerifier.is_attendee(db, event, caller)
        if attendance.attended:
            booking = BookingReconciler.try_ensure_booking(db, event.id, caller.user_id)
        else:
            booking = BookingRepo.find_active(db, event.id, caller.user_id)
        if booking is not None:
            booking = BookingRepo.reload(db, booking.id)

        eligibility = Eligibility.from_booking(booking, attendance)
        decision = decide(flags, eligibility, Workflow.QR_SCAN)
        logger.info(
            f"Certificate gate for event {event.id}, user {caller.user_id} (qr_scan): "
            f"{decision.action.value} ({decision.reason})"
        )
        return plan_certificate(event.id, caller.user_id, flags, eligibility, Workflow.QR_SCAN, decision)
