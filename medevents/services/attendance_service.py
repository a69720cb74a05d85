"""
Attendance verification
"""

from dataclasses import dataclass
from sqlalchemy.orm import Session

from medevents.core.identity import Caller
from medevents.models import Event
from medevents.services.repositories import AttendanceRepo, BookingRepo

REASON_OK = "ok"
REASON_NO_BOOKING = "no_booking"
REASON_NO_SCAN = "no_scan"


@dataclass(frozen=True)
class AttendanceResult:
    attended: bool
    reason: str


def evaluate_attendance(event: Event, caller: Caller, has_booking: bool, has_scan: bool) -> AttendanceResult:
    """Every enabled requirement must hold; staff bypass all of them."""
    if caller.is_privileged:
        return AttendanceResult(True, REASON_OK)
    if not event.booking_enabled and not event.qr_attendance_enabled:
        return AttendanceResult(True, REASON_OK)
    if event.booking_enabled and not has_booking:
        return AttendanceResult(False, REASON_NO_BOOKING)
    if event.qr_attendance_enabled and not has_scan:
        return AttendanceResult(False, REASON_NO_SCAN)
    return AttendanceResult(True, REASON_OK)


class AttendanceVerifier:
    """Reads the eligibility store and applies ``evaluate_attendance``"""

    @staticmethod
    def is_attendee(db: Session, event: Event, caller: Caller) -> AttendanceResult:
        if caller.is_privileged or not caller.is_authenticated:
            return evaluate_attendance(event, caller, has_booking=False, has_scan=False)

        has_booking = False
        if event.booking_enabled:
            has_booking = BookingRepo.find_active(db, event.id, caller.user_id) is not None

        has_scan = False
        if event.qr_attendance_enabled:
            has_scan = AttendanceRepo.has_successful_scan(db, event.id, caller.user_id)

        return evaluate_attendance(event, caller, has_booking, has_scan)
