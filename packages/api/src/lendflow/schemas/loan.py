# This project was developed with assistance from AI tools.
"""Loan request/response schemas."""

from datetime import datetime
from decimal import Decimal
from typing import Annotated, Any, Literal

from lendflow_db.enums import LoanKYCStatus, LoanStatus
from pydantic import BaseModel, ConfigDict, Field

from . import Pagination
from .kyc import KYCReadiness, PresignedUpload


class SelfApplicant(BaseModel):
    """The submitting merchant is also the beneficiary."""

    kind: Literal["self"] = "self"


class ExistingApplicant(BaseModel):
    """An existing CUSTOMER account is the beneficiary."""

    kind: Literal["existing"] = "existing"
    customer_id: str


class NewApplicant(BaseModel):
    """Inline customer details; creates an unverified CUSTOMER linked to the merchant."""

    kind: Literal["new"] = "new"
    name: str = Field(min_length=1, max_length=255)
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=255)
    phone: str = Field(pattern=r"^\+?[0-9]{10,15}$")
    address: str | None = None
    pincode: str | None = Field(default=None, pattern=r"^[0-9]{6}$")


ApplicantSpec = Annotated[
    SelfApplicant | ExistingApplicant | NewApplicant,
    Field(discriminator="kind"),
]


class LoanDocumentInput(BaseModel):
    """Reference to an object the client already uploaded to storage."""

    storage_key: str = Field(min_length=1, max_length=500)
    doc_type: str = Field(min_length=1, max_length=50)
    secure_url: str | None = None
    filename: str | None = None
    content_type: str | None = None
    size_bytes: int | None = Field(default=None, ge=0)


class LoanDocumentUploadRequest(BaseModel):
    filename: str = Field(min_length=1, max_length=255)


class LoanDocumentUploadResponse(BaseModel):
    """Presigned POST for a supporting document, keyed under the caller's id."""

    storage_key: str
    upload: PresignedUpload
    expires_in: int


class LoanApplyRequest(BaseModel):
    applicant: ApplicantSpec = Field(default_factory=SelfApplicant)
    loan_type_id: int
    amount: Decimal
    tenor_months: int
    metadata: dict[str, Any] = Field(default_factory=dict)
    documents: list[LoanDocumentInput] = Field(default_factory=list)


class AssignBankerRequest(BaseModel):
    banker_id: str


class ApproveLoanRequest(BaseModel):
    interest_rate: Decimal | None = None
    notes: str | None = None


class RejectLoanRequest(BaseModel):
    notes: str | None = None


class DisburseLoanRequest(BaseModel):
    reference_id: str | None = None
    notes: str | None = None


class CancelLoanRequest(BaseModel):
    reason: str | None = None


class LoanDocumentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    doc_type: str
    storage_key: str
    secure_url: str | None = None
    filename: str | None = None
    content_type: str | None = None
    size_bytes: int | None = None
    uploaded_by: str
    created_at: datetime


class LoanResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    loan_type_id: int
    applicant_id: str
    merchant_id: str | None = None
    banker_id: str | None = None
    amount: Decimal
    tenor_months: int
    metadata: dict[str, Any] = Field(default_factory=dict, validation_alias="loan_metadata")
    status: LoanStatus
    kyc_status: LoanKYCStatus
    interest_rate: Decimal | None = None
    created_at: datetime
    updated_at: datetime
    documents: list[LoanDocumentResponse] = []
    kyc_readiness: KYCReadiness | None = None


class LoanListResponse(BaseModel):
    data: list[LoanResponse]
    pagination: Pagination
