"""
Post-event certificate sweep (Workflow A).

Runs after events have ended and issues certificates to every verified
attendee who does not hold one yet. QR-triggered issuance may already have
covered most attendees; the sweep is the backstop.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from medevents.core.config import settings
from medevents.core.identity import Caller
from medevents.models import Event
from medevents.services.attendance_service import AttendanceVerifier
from medevents.services.booking_reconciler import BookingReconciler
from medevents.services.certificate_gate import (
    CertificateFlags,
    Eligibility,
    GateAction,
    Workflow,
    decide,
    plan_certificate,
)
from medevents.services.outbox import OutboxDispatcher
from medevents.services.repositories import (
    AttendanceRepo,
    BookingRepo,
    CertificateRepo,
    EventRepo,
    UserRepo,
)

logger = logging.getLogger(__name__)


@dataclass
class EventSweepResult:
    event_id: int
    candidates: int = 0
    issued: int = 0
    already_issued: int = 0
    skipped: int = 0
    deferred: int = 0
    failed: int = 0

    @property
    def complete(self) -> bool:
        return self.failed == 0 and self.deferred == 0


@dataclass
class SweepReport:
    events: List[EventSweepResult] = field(default_factory=list)

    @property
    def issued(self) -> int:
        return sum(result.issued for result in self.events)

    @property
    def failed(self) -> int:
        return sum(result.failed for result in self.events)

    def to_dict(self) -> dict:
        return {
            "events_processed": len(self.events),
            "certificates_issued": self.issued,
            "failures": self.failed,
            "events": [result.__dict__ for result in self.events],
        }


def sweep_event(db: Session, event: Event, dispatcher: OutboxDispatcher) -> EventSweepResult:
    result = EventSweepResult(event_id=event.id)
    flags = CertificateFlags.from_event(event)

    candidates = BookingRepo.checked_in_user_ids(db, event.id) | AttendanceRepo.scanned_user_ids(db, event.id)
    already_issued = CertificateRepo.issued_user_ids(db, event.id)
    result.candidates = len(candidates)
    result.already_issued = len(candidates & already_issued)

    for user_id in sorted(candidates - already_issued):
        user = UserRepo.get(db, user_id)
        caller = Caller(user_id=user_id, role=user.role if user else None)

        attendance = AttendanceVerifier.is_attendee(db, event, caller)
        booking = None
        if attendance.attended:
            booking = BookingReconciler.try_ensure_booking(db, event.id, user_id)

        eligibility = Eligibility.from_booking(booking, attendance)
        decision = decide(flags, eligibility, Workflow.POST_EVENT_SWEEP)
        logger.info(
            f"Certificate gate for event {event.id}, user {user_id} (post_event_sweep): "
            f"{decision.action.value} ({decision.reason})"
        )
        if decision.action is GateAction.SKIP:
            result.skipped += 1
            continue
        if decision.action is GateAction.DEFER:
            result.deferred += 1
            continue

        actions = plan_certificate(event.id, user_id, flags, eligibility, Workflow.POST_EVENT_SWEEP, decision)
        report = dispatcher.dispatch(actions)
        if report.failed:
            result.failed += 1
        elif report.already_issued:
            result.already_issued += 1
        else:
            result.issued += 1

    return result


def run_certificate_sweep(db: Session, dispatcher: OutboxDispatcher, now: Optional[datetime] = None) -> SweepReport:
    """Sweep every ended, unswept event inside the lookback window"""
    now = now or datetime.now(timezone.utc)
    not_before = (now - timedelta(days=settings.SWEEP_LOOKBACK_DAYS)).date()

    report = SweepReport()
    for event in EventRepo.list_sweep_candidates(db, not_before):
        if event.ends_at > now:
            continue
        result = sweep_event(db, event, dispatcher)
        report.events.append(result)
        if result.complete:
            EventRepo.mark_swept(db, event)
        logger.info(
            f"Swept event {event.id}: {result.issued} issued, {result.skipped} skipped, "
            f"{result.deferred} deferred, {result.failed} failed"
        )
    return report
