# This project was developed with assistance from AI tools.
"""
Lendflow -- domain models

Users with role-specific profiles, reference data (banks, loan types),
loans and their documents, KYC documents, notifications, and audit trail.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Table,
    Text,
    func,
)
from sqlalchemy.orm import relationship

from .database import Base
from .enums import (
    KYCDocumentStatus,
    KYCDocumentType,
    LoanKYCStatus,
    LoanStatus,
    NotificationStatus,
    UserRole,
    UserStatus,
)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _new_user_id() -> str:
    return str(uuid.uuid4())


bank_loan_types = Table(
    "bank_loan_types",
    Base.metadata,
    Column("bank_id", Integer, ForeignKey("banks.id", ondelete="CASCADE"), primary_key=True),
    Column(
        "loan_type_id",
        Integer,
        ForeignKey("loan_types.id", ondelete="CASCADE"),
        primary_key=True,
    ),
)


class User(Base):
    """Account for any role. ``id`` is the identity provider subject."""

    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=_new_user_id)
    role = Column(Enum(UserRole, name="user_role", native_enum=False), nullable=False, index=True)
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False, index=True)
    phone = Column(String(20), nullable=True)
    status = Column(
        Enum(UserStatus, name="user_status", native_enum=False),
        nullable=False,
        default=UserStatus.ACTIVE,
    )
    is_email_verified = Column(Boolean, nullable=False, default=False)
    email_verification_token_hash = Column(String(64), nullable=True)
    email_verification_expires_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    customer_profile = relationship(
        "CustomerProfile",
        back_populates="user",
        uselist=False,
        cascade="all, delete-orphan",
        foreign_keys="CustomerProfile.user_id",
    )
    merchant_profile = relationship(
        "MerchantProfile", back_populates="user", uselist=False, cascade="all, delete-orphan",
    )
    banker_profile = relationship(
        "BankerProfile", back_populates="user", uselist=False, cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<User(id={self.id}, role='{self.role}')>"


class CustomerProfile(Base):
    """Customer details; ``merchant_id`` links the customer to the merchant that onboarded them."""

    __tablename__ = "customer_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    address = Column(Text, nullable=True)
    pincode = Column(String(6), nullable=True, index=True)
    merchant_id = Column(
        Integer, ForeignKey("merchant_profiles.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    user = relationship("User", back_populates="customer_profile", foreign_keys=[user_id])
    merchant = relationship("MerchantProfile", back_populates="customers")

    def __repr__(self):
        return f"<CustomerProfile(id={self.id}, user_id={self.user_id})>"


class MerchantProfile(Base):
    """Business identity of a merchant account."""

    __tablename__ = "merchant_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    business_name = Column(String(255), nullable=False)
    gst_number = Column(String(15), nullable=True)
    address = Column(Text, nullable=True)
    pincode = Column(String(6), nullable=True, index=True)

    user = relationship("User", back_populates="merchant_profile")
    customers = relationship("CustomerProfile", back_populates="merchant")

    def __repr__(self):
        return f"<MerchantProfile(id={self.id}, business='{self.business_name}')>"


class BankerProfile(Base):
    """Banker affiliation and activation status."""

    __tablename__ = "banker_profiles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), unique=True, nullable=False,
    )
    bank_id = Column(
        Integer, ForeignKey("banks.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    branch = Column(String(255), nullable=True)
    pincode = Column(String(6), nullable=True, index=True)
    employee_id = Column(String(50), nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    user = relationship("User", back_populates="banker_profile")
    bank = relationship("Bank", back_populates="bankers")

    def __repr__(self):
        return f"<BankerProfile(id={self.id}, bank_id={self.bank_id})>"


class Bank(Base):
    """Lending institution offering one or more loan types."""

    __tablename__ = "banks"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), unique=True, nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    loan_types = relationship("LoanType", secondary=bank_loan_types, back_populates="banks")
    bankers = relationship("BankerProfile", back_populates="bank")

    def __repr__(self):
        return f"<Bank(id={self.id}, name='{self.name}')>"


class LoanType(Base):
    """Admin-managed loan product: bounds, metadata schema, required document tags."""

    __tablename__ = "loan_types"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(255), nullable=False)
    code = Column(String(50), unique=True, nullable=True)
    description = Column(Text, nullable=True)
    interest_rate_min = Column(Numeric(5, 2), nullable=True)
    interest_rate_max = Column(Numeric(5, 2), nullable=True)
    tenor_min_months = Column(Integer, nullable=True)
    tenor_max_months = Column(Integer, nullable=True)
    amount_min = Column(Numeric(14, 2), nullable=True)
    amount_max = Column(Numeric(14, 2), nullable=True)
    schema = Column(JSON, nullable=True)
    required_documents = Column(JSON, nullable=False, default=list)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    banks = relationship("Bank", secondary=bank_loan_types, back_populates="loan_types")

    def __repr__(self):
        return f"<LoanType(id={self.id}, code='{self.code}')>"


class Loan(Base):
    """Loan application moving through the lifecycle in ``LoanStatus``."""

    __tablename__ = "loans"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_loans_amount_positive"),
        CheckConstraint("tenor_months > 0", name="ck_loans_tenor_positive"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_type_id = Column(
        Integer, ForeignKey("loan_types.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    applicant_id = Column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=False, index=True,
    )
    merchant_id = Column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True, index=True,
    )
    banker_id = Column(
        String(36), ForeignKey("users.id", ondelete="RESTRICT"), nullable=True, index=True,
    )
    amount = Column(Numeric(14, 2), nullable=False)
    tenor_months = Column(Integer, nullable=False)
    loan_metadata = Column("metadata", JSON, nullable=False, default=dict)
    status = Column(
        Enum(LoanStatus, name="loan_status", native_enum=False),
        nullable=False,
        default=LoanStatus.SUBMITTED,
        index=True,
    )
    kyc_status = Column(
        Enum(LoanKYCStatus, name="loan_kyc_status", native_enum=False),
        nullable=False,
        default=LoanKYCStatus.PENDING,
    )
    interest_rate = Column(Numeric(5, 2), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    loan_type = relationship("LoanType")
    documents = relationship(
        "LoanDocument", back_populates="loan", cascade="all, delete-orphan",
    )

    def __repr__(self):
        return f"<Loan(id={self.id}, status='{self.status}')>"


class LoanDocument(Base):
    """Document attached to a loan at application time."""

    __tablename__ = "loan_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    loan_id = Column(
        Integer, ForeignKey("loans.id", ondelete="CASCADE"), nullable=False, index=True
    )
    doc_type = Column(String(50), nullable=False)
    storage_key = Column(String(500), nullable=False)
    secure_url = Column(String(1000), nullable=True)
    filename = Column(String(255), nullable=True)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    uploaded_by = Column(String(36), nullable=False)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    loan = relationship("Loan", back_populates="documents")

    def __repr__(self):
        return f"<LoanDocument(id={self.id}, type='{self.doc_type}')>"


class KYCDocument(Base):
    """Identity document submitted for KYC review.

    ``storage_key`` is always ``{user_id}/{doc_type}/{id}``.
    """

    __tablename__ = "kyc_documents"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    doc_type = Column(
        Enum(KYCDocumentType, name="kyc_document_type", native_enum=False), nullable=False,
    )
    storage_key = Column(String(500), nullable=True)
    status = Column(
        Enum(KYCDocumentStatus, name="kyc_document_status", native_enum=False),
        nullable=False,
        default=KYCDocumentStatus.UPLOADING,
        index=True,
    )
    verified_by = Column(String(36), nullable=True)
    review_notes = Column(Text, nullable=True)
    content_type = Column(String(100), nullable=True)
    size_bytes = Column(Integer, nullable=True)
    uploaded_by = Column(String(36), nullable=True)
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    updated_at = Column(
        DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    def __repr__(self):
        return f"<KYCDocument(id={self.id}, type='{self.doc_type}', status='{self.status}')>"


class Notification(Base):
    """User-facing message. Informational only."""

    __tablename__ = "notifications"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(
        String(36), ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    type = Column(String(50), nullable=False)
    message = Column(Text, nullable=False)
    status = Column(
        Enum(NotificationStatus, name="notification_status", native_enum=False),
        nullable=False,
        default=NotificationStatus.UNREAD,
        index=True,
    )
    created_at = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )

    def __repr__(self):
        return f"<Notification(id={self.id}, type='{self.type}')>"


class AuditEvent(Base):
    """Append-only audit trail. INSERT + SELECT only -- no UPDATE or DELETE."""

    __tablename__ = "audit_events"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    prev_hash = Column(String(64), nullable=True)
    event_type = Column(String(100), nullable=False, index=True)
    user_id = Column(String(36), nullable=True)
    user_role = Column(String(50), nullable=True)
    entity_type = Column(String(50), nullable=False)
    entity_id = Column(String(64), nullable=False)
    loan_id = Column(Integer, nullable=True, index=True)
    details = Column(Text, nullable=True)
    event_data = Column(JSON, nullable=True)

    def __repr__(self):
        return f"<AuditEvent(id={self.id}, type='{self.event_type}')>"


class AuditViolation(Base):
    """Records attempted UPDATE/DELETE on audit_events (trigger-populated)."""

    __tablename__ = "audit_violations"

    id = Column(Integer, primary_key=True, autoincrement=True)
    timestamp = Column(
        DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False
    )
    attempted_operation = Column(String(10), nullable=False)
    db_user = Column(String(255), nullable=False)
    audit_event_id = Column(Integer, nullable=True)
