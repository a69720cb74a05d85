"""
Attendance scan schemas
"""

from typing import Optional
from pydantic import BaseModel, Field, model_validator

class ScanRequest(BaseModel):
    """QR attendance scan. Either the raw QR payload or the event id is required."""
    qr_code_data: Optional[str] = Field(None, alias="qrCodeData")
    event_id: Optional[int] = Field(None, alias="eventId")

    model_config = {"populate_by_name": True}

    @model_validator(mode="after")
    def one_of_required(self):
        if not self.qr_code_data and self.event_id is None:
            raise ValueError("Missing required field: qrCodeData or eventId")
        return self
