"""
Booking reconciler: find-or-create the booking anchor for an (event, user) pair.
"""

import logging
from typing import Optional

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from medevents.exceptions import StorageFailure
from medevents.models import Booking
from medevents.services.repositories import BookingRepo

logger = logging.getLogger(__name__)


class BookingReconciler:
    """Only call once attendance is otherwise established: created bookings are
    marked attended and checked in. Commits the session."""

    @staticmethod
    def ensure_booking(db: Session, event_id: int, user_id: int) -> Booking:
        try:
            existing = BookingRepo.find_active(db, event_id, user_id)
            if existing:
                return existing

            try:
                booking = BookingRepo.create_attended(db, event_id, user_id)
                logger.info(f"Created attended booking {booking.id} for event {event_id}, user {user_id}")
                return booking
            except IntegrityError:
                # Another request created the booking first; use the winner's row
                db.rollback()
                winner = BookingRepo.find_active(db, event_id, user_id)
                if winner is None:
                    raise
                logger.info(f"Booking race for event {event_id}, user {user_id} resolved to booking {winner.id}")
                return winner
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Could not establish booking for event {event_id}, user {user_id}: {e}")
            raise StorageFailure("certificate eligibility could not be established") from e

    @staticmethod
    def try_ensure_booking(db: Session, event_id: int, user_id: int) -> Optional[Booking]:
        """Like ensure_booking, but a storage failure yields None instead of raising"""
        try:
            return BookingReconciler.ensure_booking(db, event_id, user_id)
        except StorageFailure:
            return None
