"""
Bonafide Portal — Certificate request schemas
"""
import enum
from datetime import datetime

from pydantic import Field

from bonafide_portal.schemas.base import CamelModel


class RequestStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class CertificateRequestCreate(CamelModel):
    student_name: str = Field(..., min_length=1, max_length=255)
    usn: str = Field(..., min_length=1, max_length=32)
    father_name: str = Field(..., min_length=1, max_length=255)
    semester: str
    year: str
    department: str = Field(..., min_length=1, max_length=128)
    purpose: str = Field(..., min_length=1, max_length=1000, examples=["loan application"])


class CertificateRequest(CamelModel):
    """Stored under cert_request:<id>. One owning student per record."""

    id: str
    student_id: str
    student_name: str
    usn: str
    father_name: str
    semester: str
    year: str
    department: str
    purpose: str
    status: RequestStatus = RequestStatus.PENDING
    certificate_number: str | None = None
    approved_date: datetime | None = None
    created_at: datetime
    updated_at: datetime | None = None


class StatusUpdate(CamelModel):
    status: RequestStatus


class SubmitResponse(CamelModel):
    success: bool = True
    message: str
    request_id: str


class RequestListResponse(CamelModel):
    success: bool = True
    requests: list[CertificateRequest]


class RequestResponse(CamelModel):
    success: bool = True
    message: str
    request: CertificateRequest
