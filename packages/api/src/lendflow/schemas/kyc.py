# This project was developed with assistance from AI tools.
"""KYC document and readiness schemas."""

from datetime import datetime

from lendflow_db.enums import KYCDocumentStatus, KYCDocumentType
from pydantic import BaseModel, ConfigDict, Field


class KYCReadiness(BaseModel):
    """Verified-document completeness against a role/loan-type requirement set."""

    complete: bool
    missing_types: list[KYCDocumentType]
    percent_complete: int = Field(ge=0, le=100)
    required_types: list[KYCDocumentType]
    verified_count: int


class RequiredDocument(BaseModel):
    doc_type: KYCDocumentType
    display_name: str
    verified: bool = False


class KYCStatusResponse(BaseModel):
    """Readiness plus the human-readable requirement checklist."""

    user_id: str
    readiness: KYCReadiness
    requirements: list[RequiredDocument]


class UploadUrlRequest(BaseModel):
    doc_type: KYCDocumentType


class PresignedUpload(BaseModel):
    """Presigned POST: the client sends ``fields`` plus the file to ``url``."""

    url: str
    fields: dict[str, str]


class UploadUrlResponse(BaseModel):
    document_id: int
    storage_key: str
    upload: PresignedUpload
    expires_in: int
    instructions: str


class CompleteUploadRequest(BaseModel):
    """Sent after the client finished the direct-to-storage upload.

    ``storage_key`` is informational only; the server reconstructs it.
    """

    storage_key: str | None = None
    content_type: str
    size_bytes: int = Field(ge=0)


class KYCDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: str
    doc_type: KYCDocumentType
    status: KYCDocumentStatus
    storage_key: str | None = None
    verified_by: str | None = None
    review_notes: str | None = None
    content_type: str | None = None
    size_bytes: int | None = None
    created_at: datetime
    updated_at: datetime


class VerifyKYCRequest(BaseModel):
    status: KYCDocumentStatus
    notes: str | None = None


class KYCReviewItem(KYCDocumentResponse):
    """Pending document enriched for the reviewer queue."""

    user_name: str | None = None
    user_email: str | None = None
    user_role: str | None = None
    days_pending: int = 0
    is_overdue: bool = False


class KYCReviewListResponse(BaseModel):
    data: list[KYCReviewItem]
    count: int
