"""
Feedback intake: authorize, validate and persist a feedback submission, then
plan the feedback-gated certificate (Workflow C).
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from medevents.core.identity import Caller
from medevents.exceptions import (
    AlreadySubmitted,
    AttendanceRequired,
    EventNotFound,
    FormNotFound,
    StorageFailure,
    Unauthorized,
    ValidationFailed,
)
from medevents.models import FeedbackForm, FeedbackResponse
from medevents.schemas.feedback import AnswerError, is_blank, parse_questions
from medevents.services.attendance_service import AttendanceVerifier
from medevents.services.booking_reconciler import BookingReconciler
from medevents.services.certificate_gate import (
    CertificateFlags,
    Eligibility,
    Workflow,
    decide,
    plan_certificate,
)
from medevents.services.outbox import Action, DispatchReport, OutboxDispatcher
from medevents.services.repositories import BookingRepo, EventRepo, FeedbackRepo

logger = logging.getLogger(__name__)


def validate_answers(form: FeedbackForm, answers: Dict[str, Any]) -> Tuple[Dict[str, Any], List[str]]:
    """Check every answer against its question and collect all violations.

    Returns the normalized answer map (keyed by question id, unknown keys
    dropped) and the list of error messages in question order.
    """
    errors = []
    normalized = {}
    for question in parse_questions(form.questions):
        raw = answers.get(question.id)
        if is_blank(raw):
            if question.required:
                errors.append(f'Question "{question.text}" is required')
            continue
        try:
            normalized[question.id] = question.parse_answer(raw).value
        except AnswerError as e:
            errors.append(str(e))
    return normalized, errors


@dataclass
class FeedbackSubmission:
    response: FeedbackResponse
    booking_id: Optional[int] = None
    actions: List[Action] = field(default_factory=list)


class FeedbackIntake:

    @staticmethod
    def submit(
        db: Session,
        form_id: int,
        event_id: int,
        caller: Caller,
        answers: Dict[str, Any],
    ) -> FeedbackSubmission:
        form = FeedbackRepo.get_active_form(db, form_id)
        if form is None or (form.event_id is not None and form.event_id != event_id):
            raise FormNotFound()

        event = EventRepo.get(db, event_id)
        if event is None:
            raise EventNotFound(event_id)

        # Anonymous forms never record who answered
        user_id = None
        if not form.anonymous_enabled:
            if not caller.is_authenticated:
                raise Unauthorized()
            user_id = caller.user_id
            if not caller.is_privileged:
                attendance = AttendanceVerifier.is_attendee(db, event, caller)
                if not attendance.attended:
                    logger.info(f"Feedback rejected for event {event_id}, user {user_id}: {attendance.reason}")
                    raise AttendanceRequired(attendance.reason)

        normalized, errors = validate_answers(form, answers or {})
        if errors:
            raise ValidationFailed(errors)

        booking_id = None
        if user_id is not None:
            booking = BookingReconciler.try_ensure_booking(db, event_id, user_id)
            if booking is None:
                logger.error(
                    f"Proceeding without booking anchor for feedback on event {event_id}, user {user_id}"
                )
            else:
                booking_id = booking.id

        response = FeedbackIntake._persist(db, form, event_id, user_id, booking_id, normalized)
        logger.info(f"Feedback response {response.id} saved for form {form.id}, event {event_id}")

        if booking_id is None:
            return FeedbackSubmission(response=response)

        try:
            BookingRepo.mark_feedback_completed(db, booking_id)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not mark feedback completed on booking {booking_id}: {e}")

        booking = BookingRepo.reload(db, booking_id)
        flags = CertificateFlags.from_event(event)
        eligibility = Eligibility.from_booking(booking)
        decision = decide(flags, eligibility, Workflow.FEEDBACK)
        logger.info(
            f"Certificate gate for event {event_id}, user {user_id} (feedback): "
            f"{decision.action.value} ({decision.reason})"
        )
        actions = plan_certificate(event_id, user_id, flags, eligibility, Workflow.FEEDBACK, decision)
        return FeedbackSubmission(response=response, booking_id=booking_id, actions=actions)

    @staticmethod
    def _persist(db, form, event_id, user_id, booking_id, answers) -> FeedbackResponse:
        try:
            return FeedbackRepo.insert_response(db, form.id, event_id, user_id, booking_id, answers)
        except IntegrityError as e:
            db.rollback()
            if user_id is not None and FeedbackRepo.find_response(db, form.id, user_id) is not None:
                raise AlreadySubmitted()
            logger.error(f"Failed to save feedback response for form {form.id}: {e}")
            raise StorageFailure("Failed to save feedback response") from e
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Failed to save feedback response for form {form.id}: {e}")
            raise StorageFailure("Failed to save feedback response") from e


def submit_feedback(
    db: Session,
    dispatcher: OutboxDispatcher,
    form_id: int,
    event_id: int,
    caller: Caller,
    answers: Dict[str, Any],
) -> Tuple[FeedbackSubmission, DispatchReport]:
    """Run the intake and dispatch whatever it planned. Dispatch never fails the submission."""
    submission = FeedbackIntake.submit(db, form_id, event_id, caller, answers)
    report = dispatcher.dispatch(submission.actions)
    return submission, report
