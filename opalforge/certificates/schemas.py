from datetime import UTC, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


def utc_now_iso() -> str:
    """Current UTC time as ISO 8601 with millisecond precision and a 'Z' suffix."""
    return datetime.now(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CertificateCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    cert_id: str = Field(..., alias="certId", min_length=1)
    confidence: float = Field(..., strict=True, allow_inf_nan=False)
    timestamp: Optional[str] = None
    qr_payload: Optional[str] = Field(default=None, alias="qrPayload")

    @field_validator("cert_id")
    @classmethod
    def cert_id_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("certId must not be blank")
        return value

    @field_validator("timestamp")
    @classmethod
    def timestamp_is_iso8601(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            datetime.fromisoformat(value)
        except ValueError:
            raise ValueError("timestamp must be an ISO 8601 date-time string")
        return value

class CertificateCreateResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    cert_id: str = Field(..., alias="certId")
    message: Optional[str] = None

class Certificate(BaseModel):
    """The certificate as served by verify."""
    model_config = ConfigDict(populate_by_name=True)

    cert_id: str = Field(..., alias="certId")
    confidence: float
    timestamp: str
    qr_payload: Optional[str] = Field(default=None, alias="qrPayload")
    status: str

class HealthResponse(BaseModel):
    status: str
    service: str
    timestamp: str

class EchoResponse(BaseModel):
    status: str
    received: Any
