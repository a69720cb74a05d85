"""
Attendance routes: QR scans and QR images
"""

from fastapi import APIRouter, Depends
from fastapi.concurrency import run_in_threadpool
from fastapi.responses import Response
from sqlalchemy.orm import Session

from medevents.api.deps import get_caller, get_dispatcher, rate_limited
from medevents.api.ws import websocket_manager
from medevents.core.db import get_db
from medevents.core.identity import Caller
from medevents.exceptions import EventNotFound, QRCodeNotFound
from medevents.schemas.attendance import ScanRequest
from medevents.services.checkin_service import CheckInService
from medevents.services.outbox import OutboxDispatcher
from medevents.services.qr_service import QRService
from medevents.services.repositories import AttendanceRepo, EventRepo
from medevents.utils.responses import success_response
from medevents.utils.security import verify_admin_token

router = APIRouter()

checkin_service = CheckInService(websocket_manager)

@router.post("/scan", dependencies=[Depends(rate_limited)])
async def scan(
    payload: ScanRequest,
    db: Session = Depends(get_db),
    caller: Caller = Depends(get_caller),
    dispatcher: OutboxDispatcher = Depends(get_dispatcher)
):
    """Mark attendance from a scanned QR code"""
    result = await checkin_service.scan(
        db,
        caller,
        qr_code_data=payload.qr_code_data,
        event_id=payload.event_id,
    )
    report = await run_in_threadpool(dispatcher.dispatch, result.actions)

    details = result.details()
    if not result.duplicate:
        details["certificateTriggered"] = report.certificate_issued
    return success_response(message=result.message, data=details)

@router.get("/events/{event_id}/qr.png")
async def get_qr_code(
    event_id: int,
    db: Session = Depends(get_db),
    token: str = Depends(verify_admin_token)
):
    """Get the current attendance QR code image for an event"""
    if EventRepo.get(db, event_id) is None:
        raise EventNotFound(event_id)

    qr_code = AttendanceRepo.latest_qr_code(db, event_id)
    if qr_code is None:
        raise QRCodeNotFound()

    qr_bytes = QRService.generate_attendance_qr(event_id, qr_code.code)

    return Response(
        content=qr_bytes,
        media_type="image/png",
        headers={"Content-Disposition": f"inline; filename=attendance_qr_{event_id}.png"}
    )
