"""
Booking model
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Index, text
from sqlalchemy.orm import relationship

from medevents.core.db import Base

BOOKING_CONFIRMED = "confirmed"
BOOKING_ATTENDED = "attended"
BOOKING_CANCELLED = "cancelled"

class Booking(Base):
    __tablename__ = "event_bookings"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    status = Column(String(20), default=BOOKING_CONFIRMED, nullable=False)  # confirmed, attended, cancelled
    checked_in = Column(Boolean, default=False, nullable=False)
    checked_in_at = Column(DateTime, nullable=True)
    feedback_completed = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    event = relationship("Event", back_populates="bookings")
    user = relationship("User")

    # At most one non-cancelled booking per (event, user)
    __table_args__ = (
        Index(
            "uq_event_bookings_active",
            "event_id",
            "user_id",
            unique=True,
            sqlite_where=text("status != 'cancelled'"),
            postgresql_where=text("status != 'cancelled'"),
        ),
    )

    def __repr__(self) -> str:
        return f"<Booking(id={self.id}, event={self.event_id}, user={self.user_id}, status={self.status})>"
