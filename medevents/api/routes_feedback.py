"""
Feedback submission routes
"""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from medevents.api.deps import get_caller, get_dispatcher, rate_limited
from medevents.core.db import get_db
from medevents.core.identity import Caller
from medevents.schemas.feedback import FeedbackSubmitRequest, FeedbackSubmitResult
from medevents.services.feedback_service import submit_feedback
from medevents.services.outbox import OutboxDispatcher
from medevents.utils.responses import success_response

router = APIRouter()

@router.post("/submit", dependencies=[Depends(rate_limited)])
async def submit(
    payload: FeedbackSubmitRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    dispatcher: OutboxDispatcher = Depends(get_dispatcher)
):
    """Submit feedback for an event; may trigger certificate issuance"""
    submission, report = await run_in_threadpool(
        submit_feedback,
        db,
        dispatcher,
        form_id=payload.form_id,
        event_id=payload.event_id,
        caller=caller,
        answers=payload.answers,
    )

    result = FeedbackSubmitResult(
        response_id=submission.response.id,
        certificate_triggered=report.certificate_issued,
    )
    return success_response(
        message="Feedback submitted successfully",
        data=result.model_dump(by_alias=True)
    )
