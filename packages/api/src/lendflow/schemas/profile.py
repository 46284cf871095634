# This project was developed with assistance from AI tools.
"""Role-shaped user profiles as a discriminated union."""

from datetime import datetime
from typing import Annotated, Literal

from lendflow_db.enums import UserRole, UserStatus
from pydantic import BaseModel, ConfigDict, Field


class CustomerProfileView(BaseModel):
    kind: Literal["customer"] = "customer"
    address: str | None = None
    pincode: str | None = None
    merchant_profile_id: int | None = None


class MerchantProfileView(BaseModel):
    kind: Literal["merchant"] = "merchant"
    business_name: str
    gst_number: str | None = None
    address: str | None = None
    pincode: str | None = None


class BankerProfileView(BaseModel):
    kind: Literal["banker"] = "banker"
    bank_id: int | None = None
    branch: str | None = None
    pincode: str | None = None
    employee_id: str | None = None
    is_active: bool = True


RoleProfile = Annotated[
    CustomerProfileView | MerchantProfileView | BankerProfileView,
    Field(discriminator="kind"),
]


class UserResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    role: UserRole
    name: str
    email: str
    phone: str | None = None
    status: UserStatus
    is_email_verified: bool
    created_at: datetime
    profile: RoleProfile | None = None


class AccountUpdate(BaseModel):
    """Self-service edit of the account row. Unknown fields are refused."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=255)
    phone: str | None = Field(default=None, max_length=20)


class CustomerProfileUpdate(AccountUpdate):
    address: str | None = None
    pincode: str | None = Field(default=None, pattern=r"^[0-9]{6}$")


class MerchantProfileUpdate(AccountUpdate):
    business_name: str | None = Field(default=None, min_length=1, max_length=255)
    gst_number: str | None = Field(default=None, max_length=15)
    address: str | None = None
    pincode: str | None = Field(default=None, pattern=r"^[0-9]{6}$")


class BankerProfileUpdate(AccountUpdate):
    """Bank affiliation and activation stay with admins."""

    branch: str | None = Field(default=None, max_length=255)
    pincode: str | None = Field(default=None, pattern=r"^[0-9]{6}$")
    employee_id: str | None = Field(default=None, max_length=50)
