"""
Database models package
"""

from .user import User
from .event import Event
from .booking import Booking
from .attendance import EventQRCode, QRCodeScan
from .feedback import FeedbackForm, FeedbackResponse
from .certificate import Certificate

__all__ = [
    "User",
    "Event",
    "Booking",
    "EventQRCode",
    "QRCodeScan",
    "FeedbackForm",
    "FeedbackResponse",
    "Certificate",
]
