"""
Scheduled job entry points for external cron
"""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.orm import Session

from medevents.api.deps import get_dispatcher
from medevents.core.db import get_db
from medevents.services.certificate_sweep import run_certificate_sweep
from medevents.services.feedback_invites import run_feedback_invite_sweep
from medevents.services.outbox import OutboxDispatcher
from medevents.utils.responses import success_response
from medevents.utils.security import verify_cron_or_admin

router = APIRouter()

@router.post("/certificates/sweep")
async def certificate_sweep(
    db: Session = Depends(get_db),
    dispatcher: OutboxDispatcher = Depends(get_dispatcher),
    source: str = Depends(verify_cron_or_admin)
):
    """Issue certificates for events that have ended"""
    report = await run_in_threadpool(run_certificate_sweep, db, dispatcher)
    return success_response(message="Certificate sweep completed", data=report.to_dict())

@router.post("/feedback-invites")
async def feedback_invites(
    db: Session = Depends(get_db),
    dispatcher: OutboxDispatcher = Depends(get_dispatcher),
    source: str = Depends(verify_cron_or_admin)
):
    """Invite attendees of ended events to give feedback"""
    report = await run_in_threadpool(run_feedback_invite_sweep, db, dispatcher)
    return success_response(message="Feedback invites sent", data=report.to_dict())
