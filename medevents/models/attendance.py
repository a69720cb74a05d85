"""
Attendance QR code and scan models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey
from sqlalchemy.orm import relationship

from medevents.core.db import Base

class EventQRCode(Base):
    __tablename__ = "event_qr_codes"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    code = Column(String(64), unique=True, nullable=False, index=True)
    active = Column(Boolean, default=True, nullable=False)
    scan_window_start = Column(DateTime, nullable=False)
    scan_window_end = Column(DateTime, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    event = relationship("Event", back_populates="qr_codes")
    scans = relationship("QRCodeScan", back_populates="qr_code")


class QRCodeScan(Base):
    """Append-only attendance record. Only successful scans count."""

    __tablename__ = "qr_code_scans"

    id = Column(Integer, primary_key=True, index=True)
    qr_code_id = Column(Integer, ForeignKey("event_qr_codes.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("event_bookings.id"), nullable=True)
    scan_success = Column(Boolean, default=False, nullable=False)
    failure_reason = Column(String(255), nullable=True)
    scanned_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    qr_code = relationship("EventQRCode", back_populates="scans")
