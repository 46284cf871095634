# This project was developed with assistance from AI tools.
"""Domain error taxonomy.

Services raise these; ``main.py`` renders them as RFC 7807 Problem Details
with a machine-readable ``code`` and a ``details`` payload callers branch on.
"""

from typing import Any


class LendingError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = 400
    code: str = "LENDING_ERROR"

    def __init__(self, message: str, *, details: dict[str, Any] | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(LendingError):
    status_code = 404
    code = "NOT_FOUND"


class ValidationFailedError(LendingError):
    """Input failed validation; ``errors`` lists each offending field."""

    status_code = 400
    code = "VALIDATION_FAILED"

    def __init__(self, message: str, errors: list[dict[str, str]] | None = None):
        self.errors = errors or []
        super().__init__(message, details={"errors": self.errors})


class MissingDocumentsError(LendingError):
    status_code = 400
    code = "MISSING_DOCUMENTS"

    def __init__(self, missing_types: list[str]):
        self.missing_types = missing_types
        super().__init__(
            f"Missing required documents: {', '.join(missing_types)}",
            details={"missing_types": missing_types},
        )


class DocumentVerificationFailedError(LendingError):
    status_code = 400
    code = "DOCUMENT_VERIFICATION_FAILED"

    def __init__(self, documents: list[str]):
        self.documents = documents
        super().__init__(
            "One or more documents could not be verified",
            details={"documents": documents},
        )


class InvalidStateTransitionError(LendingError):
    status_code = 409
    code = "INVALID_STATE_TRANSITION"


class ForbiddenError(LendingError):
    status_code = 403
    code = "FORBIDDEN"


class KYCIncompleteError(LendingError):
    """Applicant's verified KYC set is incomplete; clients use this to drive remediation."""

    status_code = 400
    code = "KYC_INCOMPLETE"

    def __init__(self, missing_types: list[str], percent_complete: int):
        self.missing_types = missing_types
        self.percent_complete = percent_complete
        super().__init__(
            "Applicant KYC is incomplete",
            details={"missing_types": missing_types, "percent_complete": percent_complete},
        )


class ConflictError(LendingError):
    status_code = 409
    code = "CONFLICT"


class PayloadTooLargeError(LendingError):
    status_code = 413
    code = "PAYLOAD_TOO_LARGE"


class UnsupportedMediaTypeError(LendingError):
    status_code = 415
    code = "UNSUPPORTED_MEDIA_TYPE"
