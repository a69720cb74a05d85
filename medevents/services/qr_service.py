"""
QR code generation service
"""

import io
import qrcode

from medevents.core.config import settings

class QRService:
    """Service for generating attendance QR codes"""

    @staticmethod
    def get_scan_url(event_id: int, code: str) -> str:
        """URL encoded into the attendance QR code"""
        return f"{settings.BASE_URL}/attendance/scan?event={event_id}&code={code}"

    @staticmethod
    def generate_attendance_qr(event_id: int, code: str, format: str = 'PNG') -> bytes:
        """Render the attendance QR code as image bytes"""
        qr = qrcode.QRCode(
            version=1,
            error_correction=qrcode.constants.ERROR_CORRECT_M,
            box_size=10,
            border=4,
        )
        qr.add_data(QRService.get_scan_url(event_id, code))
        qr.make(fit=True)

        img = qr.make_image(fill_color="black", back_color="white")

        buffer = io.BytesIO()
        img.save(buffer, format=format)
        return buffer.getvalue()
