# This project was developed with assistance from AI tools.
"""Pydantic models for admin endpoints: users, reference data, audit."""

from datetime import datetime
from decimal import Decimal
from typing import Any

from lendflow_db.enums import UserStatus
from pydantic import BaseModel, ConfigDict, Field

from . import Pagination
from .profile import UserResponse


class UserListResponse(BaseModel):
    data: list[UserResponse]
    pagination: Pagination


class UserStatusUpdate(BaseModel):
    status: UserStatus
    reason: str | None = None


class LoanTypeBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    code: str | None = Field(default=None, max_length=50)
    description: str | None = None
    interest_rate_min: Decimal | None = None
    interest_rate_max: Decimal | None = None
    tenor_min_months: int | None = None
    tenor_max_months: int | None = None
    amount_min: Decimal | None = None
    amount_max: Decimal | None = None
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    required_documents: list[str] = Field(default_factory=list)

    model_config = ConfigDict(populate_by_name=True)


class LoanTypeCreate(LoanTypeBase):
    bank_ids: list[int] = Field(default_factory=list)


class LoanTypeUpdate(BaseModel):
    """Partial update; only fields present in the request are applied."""

    model_config = ConfigDict(populate_by_name=True)

    name: str | None = Field(default=None, min_length=1, max_length=255)
    code: str | None = Field(default=None, max_length=50)
    description: str | None = None
    interest_rate_min: Decimal | None = None
    interest_rate_max: Decimal | None = None
    tenor_min_months: int | None = None
    tenor_max_months: int | None = None
    amount_min: Decimal | None = None
    amount_max: Decimal | None = None
    schema_: dict[str, Any] | None = Field(default=None, alias="schema")
    required_documents: list[str] | None = None
    bank_ids: list[int] | None = None


class LoanTypeResponse(LoanTypeBase):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    bank_ids: list[int] = Field(default_factory=list)
    created_at: datetime
    updated_at: datetime


class BankCreate(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    loan_type_ids: list[int] = Field(default_factory=list)


class BankUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    loan_type_ids: list[int] | None = None


class BankResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    loan_type_ids: list[int] = Field(default_factory=list)
    banker_count: int = 0
    created_at: datetime


class AuditEventItem(BaseModel):
    """Single audit event in a query response."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    timestamp: datetime
    event_type: str
    user_id: str | None = None
    user_role: str | None = None
    entity_type: str
    entity_id: str
    loan_id: int | None = None
    details: str | None = None
    event_data: dict | None = None


class AuditEventsResponse(BaseModel):
    count: int
    events: list[AuditEventItem]


class AuditChainVerifyResponse(BaseModel):
    """Response for GET /api/admin/audit/verify."""

    status: str
    events_checked: int
    first_break_id: int | None = None
