"""
Issued certificate ledger
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, UniqueConstraint

from medevents.core.db import Base

class Certificate(Base):
    __tablename__ = "certificates"

    id = Column(Integer, primary_key=True, index=True)
    certificate_id = Column(String(64), unique=True, nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    booking_id = Column(Integer, ForeignKey("event_bookings.id"), nullable=True)
    template_id = Column(String(100), nullable=False)
    workflow = Column(String(30), nullable=False)  # post_event_sweep, qr_scan, feedback
    send_email = Column(Boolean, default=False, nullable=False)
    issued_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Issuance is idempotent per (event, user)
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_certificates_event_user"),
    )
