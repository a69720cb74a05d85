"""
Post-event feedback invites.

Once an event has ended, every attendee who has not answered its feedback form
gets an invite. For feedback-gated certificates this is what brings attendees
back to complete the pair after they leave.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

from sqlalchemy.orm import Session

from medevents.core.config import settings
from medevents.models import Event
from medevents.services.outbox import NOTIFY_FEEDBACK_INVITE, Notify, OutboxDispatcher
from medevents.services.repositories import AttendanceRepo, BookingRepo, EventRepo, FeedbackRepo

logger = logging.getLogger(__name__)


@dataclass
class EventInviteResult:
    event_id: int
    candidates: int = 0
    invited: int = 0
    already_responded: int = 0
    no_form: bool = False


@dataclass
class InviteSweepReport:
    events: List[EventInviteResult] = field(default_factory=list)

    @property
    def invited(self) -> int:
        return sum(result.invited for result in self.events)

    def to_dict(self) -> dict:
        return {
            "events_processed": len(self.events),
            "invites_sent": self.invited,
            "events": [result.__dict__ for result in self.events],
        }


def invite_event(db: Session, event: Event, dispatcher: OutboxDispatcher) -> EventInviteResult:
    result = EventInviteResult(event_id=event.id)
    if not FeedbackRepo.has_active_form_for_event(db, event.id):
        result.no_form = True
        return result

    candidates = BookingRepo.checked_in_user_ids(db, event.id) | AttendanceRepo.scanned_user_ids(db, event.id)
    responded = FeedbackRepo.responded_user_ids(db, event.id)
    result.candidates = len(candidates)
    result.already_responded = len(candidates & responded)

    actions = [
        Notify(NOTIFY_FEEDBACK_INVITE, {"event_id": event.id, "user_id": user_id})
        for user_id in sorted(candidates - responded)
    ]
    report = dispatcher.dispatch(actions)
    result.invited = report.notifications_sent
    return result


def run_feedback_invite_sweep(
    db: Session, dispatcher: OutboxDispatcher, now: Optional[datetime] = None
) -> InviteSweepReport:
    """Invite attendees of every ended event inside the lookback window, once per event"""
    now = now or datetime.now(timezone.utc)
    not_before = (now - timedelta(days=settings.SWEEP_LOOKBACK_DAYS)).date()

    report = InviteSweepReport()
    for event in EventRepo.list_feedback_invite_candidates(db, not_before):
        if event.ends_at > now:
            continue
        result = invite_event(db, event, dispatcher)
        report.events.append(result)
        if result.no_form:
            # A form may still be attached; look again on the next run
            logger.info(f"Event {event.id} has no active feedback form; invites postponed")
            continue
        EventRepo.mark_feedback_invites_sent(db, event)
        logger.info(
            f"Feedback invites for event {event.id}: {result.invited} sent, "
            f"{result.already_responded} already responded"
        )
    return report
