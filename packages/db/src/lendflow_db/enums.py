# This project was developed with assistance from AI tools.
"""
Domain enums for the lending workflow.

Shared domain types used by both SQLAlchemy models (db package)
and Pydantic schemas (api package).
"""

import enum


class LoanStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    SUBMITTED = "SUBMITTED"
    UNDER_REVIEW = "UNDER_REVIEW"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    DISBURSED = "DISBURSED"
    CANCELLED = "CANCELLED"

    @classmethod
    def terminal_statuses(cls) -> frozenset["LoanStatus"]:
        """Statuses no lifecycle operation can leave."""
        return frozenset({cls.REJECTED, cls.DISBURSED, cls.CANCELLED})

    @classmethod
    def open_statuses(cls) -> frozenset["LoanStatus"]:
        """Statuses whose cached KYC status is kept in sync with documents."""
        return frozenset({cls.SUBMITTED, cls.UNDER_REVIEW})

    @classmethod
    def valid_transitions(cls) -> dict["LoanStatus", frozenset["LoanStatus"]]:
        """Allowed status transitions in the loan lifecycle."""
        return {
            cls.DRAFT: frozenset({cls.CANCELLED}),
            cls.SUBMITTED: frozenset({cls.UNDER_REVIEW, cls.CANCELLED}),
            cls.UNDER_REVIEW: frozenset(
                {cls.UNDER_REVIEW, cls.APPROVED, cls.REJECTED, cls.CANCELLED}
            ),
            cls.APPROVED: frozenset({cls.DISBURSED, cls.CANCELLED}),
            cls.REJECTED: frozenset(),
            cls.DISBURSED: frozenset(),
            cls.CANCELLED: frozenset(),
        }


class LoanKYCStatus(str, enum.Enum):
    """Per-loan cache of the applicant's KYC readiness. Strictly binary."""

    PENDING = "PENDING"
    VERIFIED = "VERIFIED"


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    MERCHANT = "merchant"
    BANKER = "banker"
    ADMIN = "admin"


class UserStatus(str, enum.Enum):
    ACTIVE = "active"
    PENDING = "pending"
    SUSPENDED = "suspended"
    REJECTED = "rejected"


class KYCDocumentType(str, enum.Enum):
    ID_PROOF = "ID_PROOF"
    ADDRESS_PROOF = "ADDRESS_PROOF"
    PAN_CARD = "PAN_CARD"
    BANK_STATEMENT = "BANK_STATEMENT"


class KYCDocumentStatus(str, enum.Enum):
    UPLOADING = "UPLOADING"
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    REJECTED = "REJECTED"


class NotificationStatus(str, enum.Enum):
    UNREAD = "unread"
    READ = "read"


class AuditEntityType(str, enum.Enum):
    LOAN = "LOAN"
    KYC_DOCUMENT = "KYC_DOCUMENT"
    USER = "USER"
    LOAN_TYPE = "LOAN_TYPE"
    BANK = "BANK"
