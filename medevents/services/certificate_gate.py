"""
Certificate gate: a pure decision over event flags and eligibility state.

Three independent triggers call it:

* ``post_event_sweep`` (Workflow A) and ``qr_scan`` (Workflow B) issue on
  verified attendance when feedback is not required.
* ``feedback`` (Workflow C) issues once the booking is both checked in and
  feedback-completed. A QR scan is also the flag-setting event for
  ``checked_in``, so under Workflow C it re-evaluates the same rule.

Overlapping passes are expected; the issuer is idempotent per (event, user).
"""

from dataclasses import dataclass
from enum import Enum
from typing import List, Optional

from medevents.services.attendance_service import AttendanceResult
from medevents.services.outbox import IssueCertificate


class Workflow(str, Enum):
    POST_EVENT_SWEEP = "post_event_sweep"
    QR_SCAN = "qr_scan"
    FEEDBACK = "feedback"


class GateAction(str, Enum):
    ISSUE = "issue"
    SKIP = "skip"
    DEFER = "defer"


@dataclass(frozen=True)
class CertificateFlags:
    auto_generate_certificate: bool
    feedback_required_for_certificate: bool
    certificate_template_id: Optional[str]
    certificate_auto_send_email: bool
    booking_enabled: bool = False
    qr_attendance_enabled: bool = False

    @classmethod
    def from_event(cls, event) -> "CertificateFlags":
        return cls(
            auto_generate_certificate=bool(event.auto_generate_certificate),
            feedback_required_for_certificate=bool(event.feedback_required_for_certificate),
            certificate_template_id=event.certificate_template_id,
            certificate_auto_send_email=bool(event.certificate_auto_send_email),
            booking_enabled=bool(event.booking_enabled),
            qr_attendance_enabled=bool(event.qr_attendance_enabled),
        )

    def snapshot(self) -> dict:
        return {
            "auto_generate_certificate": self.auto_generate_certificate,
            "feedback_required_for_certificate": self.feedback_required_for_certificate,
            "certificate_template_id": self.certificate_template_id,
            "certificate_auto_send_email": self.certificate_auto_send_email,
            "booking_enabled": self.booking_enabled,
            "qr_attendance_enabled": self.qr_attendance_enabled,
        }


@dataclass(frozen=True)
class Eligibility:
    """Eligibility state for one (event, user) pair, read after any updates"""
    attendance: Optional[AttendanceResult] = None
    booking_id: Optional[int] = None
    checked_in: bool = False
    feedback_completed: bool = False

    @classmethod
    def from_booking(cls, booking, attendance: Optional[AttendanceResult] = None) -> "Eligibility":
        if booking is None:
            return cls(attendance=attendance)
        return cls(
            attendance=attendance,
            booking_id=booking.id,
            checked_in=bool(booking.checked_in),
            feedback_completed=bool(booking.feedback_completed),
        )


@dataclass(frozen=True)
class GateDecision:
    action: GateAction
    reason: str

    @property
    def should_issue(self) -> bool:
        return self.action is GateAction.ISSUE


def decide(flags: CertificateFlags, eligibility: Eligibility, workflow: Workflow) -> GateDecision:
    if not flags.auto_generate_certificate:
        return GateDecision(GateAction.SKIP, "auto_generate_disabled")
    if not flags.certificate_template_id:
        return GateDecision(GateAction.SKIP, "no_template")

    if flags.feedback_required_for_certificate:
        if workflow is Workflow.POST_EVENT_SWEEP:
            return GateDecision(GateAction.SKIP, "feedback_required")
        if eligibility.booking_id is None:
            return GateDecision(GateAction.DEFER, "no_booking")
        if not eligibility.checked_in:
            return GateDecision(GateAction.DEFER, "awaiting_check_in")
        if not eligibility.feedback_completed:
            return GateDecision(GateAction.DEFER, "awaiting_feedback")
        return GateDecision(GateAction.ISSUE, "checked_in_and_feedback_completed")

    if workflow is Workflow.FEEDBACK:
        return GateDecision(GateAction.SKIP, "feedback_not_required")
    if eligibility.attendance is None or not eligibility.attendance.attended:
        reason = eligibility.attendance.reason if eligibility.attendance else "unverified"
        return GateDecision(GateAction.SKIP, f"attendance_not_verified:{reason}")
    if eligibility.booking_id is None:
        return GateDecision(GateAction.DEFER, "no_booking_anchor")
    return GateDecision(GateAction.ISSUE, "attendance_verified")


def plan_certificate(
    event_id: int,
    user_id: int,
    flags: CertificateFlags,
    eligibility: Eligibility,
    workflow: Workflow,
    decision: Optional[GateDecision] = None,
) -> List[IssueCertificate]:
    """Outbox actions for one gate pass: at most one issuance request"""
    decision = decision or decide(flags, eligibility, workflow)
    if not decision.should_issue:
        return []
    return [
        IssueCertificate(
            event_id=event_id,
            user_id=user_id,
            booking_id=eligibility.booking_id,
            template_id=flags.certificate_template_id,
            send_email=flags.certificate_auto_send_email,
            workflow=workflow.value,
            flags=flags.snapshot(),
        )
    ]
