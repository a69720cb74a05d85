"""
Admin API routes - requires authentication
"""

import secrets
from fastapi import APIRouter, Depends
from fastapi.responses import Response
from sqlalchemy.orm import Session

from medevents.core.db import get_db
from medevents.exceptions import EventNotFound, FormNotFound
from medevents.models import (
    Booking,
    Certificate,
    Event,
    EventQRCode,
    FeedbackForm,
    FeedbackResponse,
)
from medevents.models.booking import BOOKING_CANCELLED
from medevents.schemas.event import EventCreate, EventResponse, QRCodeCreate, QRCodeResponse
from medevents.schemas.feedback import FeedbackFormCreate
from medevents.services.excel_service import ExcelService
from medevents.services.qr_service import QRService
from medevents.services.repositories import AttendanceRepo, EventRepo, FeedbackRepo
from medevents.utils.responses import success_response
from medevents.utils.security import verify_admin_token

router = APIRouter()

@router.post("/events")
async def create_event(
    event_data: EventCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Create a new event with its workflow flags"""
    event = Event(**event_data.model_dump())
    db.add(event)
    db.commit()
    db.refresh(event)

    return success_response(
        message="Event created successfully",
        data=EventResponse.model_validate(event).model_dump(mode="json"),
        status_code=201
    )

@router.get("/events/{event_id}")
async def get_event_details(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Get event flags and attendance statistics"""
    event = EventRepo.get(db, event_id)
    if not event:
        raise EventNotFound(event_id)

    live_bookings = db.query(Booking).filter(
        Booking.event_id == event_id,
        Booking.status != BOOKING_CANCELLED
    )

    data = EventResponse.model_validate(event).model_dump(mode="json")
    data.update({
        "total_bookings": live_bookings.count(),
        "checked_in_count": live_bookings.filter(Booking.checked_in == True).count(),
        "scanned_count": len(AttendanceRepo.scanned_user_ids(db, event_id)),
        "feedback_count": db.query(FeedbackResponse).filter(FeedbackResponse.event_id == event_id).count(),
        "certificate_count": db.query(Certificate).filter(Certificate.event_id == event_id).count(),
    })
    return success_response(message="Event details retrieved", data=data)

@router.post("/events/{event_id}/qr-codes")
async def create_qr_code(
    event_id: int,
    qr_data: QRCodeCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Open a new attendance QR code; earlier codes for the event are deactivated"""
    if not EventRepo.get(db, event_id):
        raise EventNotFound(event_id)

    code = secrets.token_urlsafe(12)
    while db.query(EventQRCode).filter(EventQRCode.code == code).first():
        code = secrets.token_urlsafe(12)

    db.query(EventQRCode).filter(
        EventQRCode.event_id == event_id,
        EventQRCode.active == True
    ).update({"active": False})

    qr_code = EventQRCode(
        event_id=event_id,
        code=code,
        active=True,
        scan_window_start=qr_data.scan_window_start,
        scan_window_end=qr_data.scan_window_end,
    )
    db.add(qr_code)
    db.commit()
    db.refresh(qr_code)

    response = QRCodeResponse(
        id=qr_code.id,
        event_id=event_id,
        code=qr_code.code,
        active=qr_code.active,
        scan_window_start=qr_code.scan_window_start,
        scan_window_end=qr_code.scan_window_end,
        scan_url=QRService.get_scan_url(event_id, qr_code.code),
    )
    return success_response(
        message="QR code created successfully",
        data=response.model_dump(mode="json"),
        status_code=201
    )

@router.post("/feedback-forms")
async def create_feedback_form(
    form_data: FeedbackFormCreate,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Create a feedback form, optionally bound to an event"""
    if form_data.event_id is not None and not EventRepo.get(db, form_data.event_id):
        raise EventNotFound(form_data.event_id)

    form = FeedbackForm(
        event_id=form_data.event_id,
        title=form_data.title,
        questions=[question.model_dump() for question in form_data.questions],
        anonymous_enabled=form_data.anonymous_enabled,
        active=form_data.active,
    )
    db.add(form)
    db.commit()
    db.refresh(form)

    return success_response(
        message="Feedback form created successfully",
        data={
            "id": form.id,
            "event_id": form.event_id,
            "title": form.title,
            "questions": form.questions,
            "anonymous_enabled": form.anonymous_enabled,
            "active": form.active,
        },
        status_code=201
    )

@router.get("/feedback-forms/{form_id}/responses")
async def list_feedback_responses(
    form_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """List all responses to a feedback form"""
    form = db.query(FeedbackForm).filter(FeedbackForm.id == form_id).first()
    if not form:
        raise FormNotFound()

    responses = FeedbackRepo.list_responses(db, form_id)
    return success_response(
        message="Feedback responses retrieved",
        data={
            "form_id": form.id,
            "total": len(responses),
            "responses": [
                {
                    "id": response.id,
                    "event_id": response.event_id,
                    "user_id": response.user_id,
                    "booking_id": response.booking_id,
                    "answers": response.answers,
                    "completed_at": response.completed_at.isoformat(),
                }
                for response in responses
            ],
        }
    )

@router.get("/events/{event_id}/attendance.xlsx")
async def export_attendance(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Export attendance, feedback and certificate status to Excel"""
    if not EventRepo.get(db, event_id):
        raise EventNotFound(event_id)

    excel_content = ExcelService.export_attendance(db, event_id)

    return Response(
        content=excel_content,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename=attendance_{event_id}.xlsx"}
    )
