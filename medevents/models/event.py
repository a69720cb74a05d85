"""
Event model
"""

from datetime import datetime, time
from zoneinfo import ZoneInfo
from sqlalchemy import Column, Integer, String, Boolean, Date, Time, DateTime
from sqlalchemy.orm import relationship

from medevents.core.config import settings
from medevents.core.db import Base

class Event(Base):
    __tablename__ = "events"

    id = Column(Integer, primary_key=True, index=True)
    title = Column(String(255), nullable=False)
    date = Column(Date, nullable=False, index=True)
    start_time = Column(Time, nullable=True)
    end_time = Column(Time, nullable=True)

    # Workflow configuration flags
    booking_enabled = Column(Boolean, default=False, nullable=False)
    qr_attendance_enabled = Column(Boolean, default=False, nullable=False)
    feedback_enabled = Column(Boolean, default=True, nullable=False)
    auto_generate_certificate = Column(Boolean, default=False, nullable=False)
    certificate_template_id = Column(String(100), nullable=True)
    certificate_auto_send_email = Column(Boolean, default=True, nullable=False)
    feedback_required_for_certificate = Column(Boolean, default=False, nullable=False)

    certificates_swept_at = Column(DateTime, nullable=True)
    feedback_invites_sent_at = Column(DateTime, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    bookings = relationship("Booking", back_populates="event", cascade="all, delete-orphan")
    qr_codes = relationship("EventQRCode", back_populates="event", cascade="all, delete-orphan")

    @property
    def ends_at(self) -> datetime:
        """Timezone-aware end of the event in the configured event timezone"""
        end = self.end_time or time(23, 59, 59)
        return datetime.combine(self.date, end, tzinfo=ZoneInfo(settings.EVENT_TIMEZONE))
