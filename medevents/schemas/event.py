"""
Event-related Pydantic schemas
"""

from datetime import date, datetime, time
from typing import Optional
from pydantic import BaseModel, model_validator

class EventCreate(BaseModel):
    """Schema for creating an event"""
    title: str
    date: date
    start_time: Optional[time] = None
    end_time: Optional[time] = None
    booking_enabled: bool = False
    qr_attendance_enabled: bool = False
    feedback_enabled: bool = True
    auto_generate_certificate: bool = False
    certificate_template_id: Optional[str] = None
    certificate_auto_send_email: bool = True
    feedback_required_for_certificate: bool = False

class EventResponse(EventCreate):
    """Event response including workflow flags"""
    id: int
    certificates_swept_at: Optional[datetime] = None
    created_at: datetime

    class Config:
        from_attributes = True

class QRCodeCreate(BaseModel):
    """Schema for opening an attendance QR code"""
    scan_window_start: datetime
    scan_window_end: datetime

    @model_validator(mode="after")
    def window_is_ordered(self):
        if self.scan_window_end <= self.scan_window_start:
            raise ValueError("scan_window_end must be after scan_window_start")
        return self

class QRCodeResponse(BaseModel):
    id: int
    event_id: int
    code: str
    active: bool
    scan_window_start: datetime
    scan_window_end: datetime
    scan_url: str
