# This project was developed with assistance from AI tools.
__version__ = "0.1.0"

from .database import Base, DatabaseService
from .enums import (
    AuditEntityType,
    KYCDocumentStatus,
    KYCDocumentType,
    LoanKYCStatus,
    LoanStatus,
    NotificationStatus,
    UserRole,
    UserStatus,
)
from .models import (
    AuditEvent,
    AuditViolation,
    Bank,
    BankerProfile,
    CustomerProfile,
    KYCDocument,
    Loan,
    LoanDocument,
    LoanType,
    MerchantProfile,
    Notification,
    User,
    bank_loan_types,
)

__all__ = [
    "Base",
    "DatabaseService",
    "__version__",
    # Enums
    "AuditEntityType",
    "KYCDocumentStatus",
    "KYCDocumentType",
    "LoanKYCStatus",
    "LoanStatus",
    "NotificationStatus",
    "UserRole",
    "UserStatus",
    # Models
    "AuditEvent",
    "AuditViolation",
    "Bank",
    "BankerProfile",
    "CustomerProfile",
    "KYCDocument",
    "Loan",
    "LoanDocument",
    "LoanType",
    "MerchantProfile",
    "Notification",
    "User",
    "bank_loan_types",
]
