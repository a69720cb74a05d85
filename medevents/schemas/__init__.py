"""
Pydantic schemas package
"""

from .common import *
from .event import *
from .feedback import *
from .attendance import *

__all__ = [
    "StandardResponse",
    "ErrorResponse",
    "EventCreate",
    "EventResponse",
    "QRCodeCreate",
    "QRCodeResponse",
    "FeedbackFormCreate",
    "FeedbackSubmitRequest",
    "FeedbackSubmitResult",
    "ScanRequest",
]
