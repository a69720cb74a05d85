"""
Excel export of event attendance
"""

import io
import pandas as pd
from sqlalchemy.orm import Session

from medevents.models import Booking, User
from medevents.models.booking import BOOKING_CANCELLED
from medevents.services.repositories import AttendanceRepo, CertificateRepo

class ExcelService:
    """Service for handling Excel operations"""

    COLUMNS = [
        'Name', 'Email', 'Booking Status', 'Checked In', 'First Scan',
        'Feedback Completed', 'Certificate ID',
    ]

    @staticmethod
    def attendance_rows(db: Session, event_id: int) -> list:
        """One row per attendee: anyone with a live booking or a successful scan"""
        bookings = {
            booking.user_id: booking
            for booking in db.query(Booking).filter(
                Booking.event_id == event_id,
                Booking.status != BOOKING_CANCELLED,
                Booking.user_id.isnot(None),
            ).all()
        }
        scans = AttendanceRepo.first_successful_scans(db, event_id)
        certificates = CertificateRepo.by_user(db, event_id)

        user_ids = set(bookings) | set(scans)
        users = {user.id: user for user in db.query(User).filter(User.id.in_(user_ids)).all()} if user_ids else {}

        rows = []
        for user_id in sorted(user_ids, key=lambda uid: (users[uid].name if uid in users else "", uid)):
            user = users.get(user_id)
            booking = bookings.get(user_id)
            certificate = certificates.get(user_id)
            first_scan = scans.get(user_id)
            rows.append({
                'Name': user.name if user else '',
                'Email': user.email if user else '',
                'Booking Status': booking.status if booking else 'no booking',
                'Checked In': 'Yes' if (booking and booking.checked_in) or first_scan else 'No',
                'First Scan': first_scan.strftime('%Y-%m-%d %H:%M') if first_scan else '',
                'Feedback Completed': 'Yes' if booking and booking.feedback_completed else 'No',
                'Certificate ID': certificate.certificate_id if certificate else '',
            })
        return rows

    @staticmethod
    def export_attendance(db: Session, event_id: int) -> bytes:
        """Export attendance for an event to Excel"""
        df = pd.DataFrame(ExcelService.attendance_rows(db, event_id), columns=ExcelService.COLUMNS)

        buffer = io.BytesIO()
        with pd.ExcelWriter(buffer, engine='openpyxl') as writer:
            df.to_excel(writer, index=False, sheet_name='Attendance')

        return buffer.getvalue()
