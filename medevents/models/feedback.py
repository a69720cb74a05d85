"""
Feedback form and response models
"""

from datetime import datetime
from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, JSON, UniqueConstraint
from sqlalchemy.orm import relationship

from medevents.core.db import Base

class FeedbackForm(Base):
    __tablename__ = "feedback_forms"

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=True, index=True)
    title = Column(String(255), nullable=False)
    questions = Column(JSON, nullable=False, default=list)  # list of tagged question dicts
    anonymous_enabled = Column(Boolean, default=False, nullable=False)
    active = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    # Relationships
    responses = relationship("FeedbackResponse", back_populates="form")


class FeedbackResponse(Base):
    __tablename__ = "feedback_responses"

    id = Column(Integer, primary_key=True, index=True)
    form_id = Column(Integer, ForeignKey("feedback_forms.id"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=True, index=True)
    booking_id = Column(Integer, ForeignKey("event_bookings.id"), nullable=True)
    answers = Column(JSON, nullable=False, default=dict)
    completed_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    form = relationship("FeedbackForm", back_populates="responses")

    # Anonymous responses (NULL user) are not constrained
    __table_args__ = (
        UniqueConstraint("form_id", "user_id", name="uq_feedback_responses_form_user"),
    )
