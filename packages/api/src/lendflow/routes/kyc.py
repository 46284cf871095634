# This project was developed with assistance from AI tools.
"""KYC document routes: direct-to-storage upload handshake and reviewer queue."""

from fastapi import APIRouter, Depends, Query
from lendflow_db import LoanType
from lendflow_db.enums import UserRole
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.errors import NotFoundError
from ..dependencies import get_db, get_dispatcher, get_storage
from ..middleware.auth import CurrentUser, require_roles
from ..schemas.kyc import (
    CompleteUploadRequest,
    KYCDocumentResponse,
    KYCReviewItem,
    KYCReviewListResponse,
    KYCStatusResponse,
    RequiredDocument,
    UploadUrlRequest,
    UploadUrlResponse,
    VerifyKYCRequest,
)
from ..services import kyc as kyc_service
from ..services.notification import NotificationDispatcher
from ..services.storage import StorageService

router = APIRouter()

_ALL_ROLES = (UserRole.CUSTOMER, UserRole.MERCHANT, UserRole.BANKER, UserRole.ADMIN)
_ON_BEHALF_ROLES = (UserRole.MERCHANT, UserRole.BANKER, UserRole.ADMIN)
_REVIEWERS = (UserRole.BANKER, UserRole.ADMIN)


async def _hint_for(session: AsyncSession, loan_type_id: int | None) -> str | None:
    if loan_type_id is None:
        return None
    loan_type = await session.get(LoanType, loan_type_id)
    if loan_type is None:
        raise NotFoundError("Loan type not found")
    return kyc_service.loan_type_hint(loan_type)


# ---------------------------------------------------------------------------
# Own documents
# ---------------------------------------------------------------------------


@router.get(
    "/status",
    response_model=KYCStatusResponse,
    dependencies=[Depends(require_roles(*_ALL_ROLES))],
)
async def my_kyc_status(
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    loan_type_id: int | None = None,
) -> KYCStatusResponse:
    """Readiness of the caller, optionally against a loan type's extra requirements."""
    hint = await _hint_for(session, loan_type_id)
    return await kyc_service.get_kyc_status(session, user.user_id, hint)


@router.get(
    "/required",
    response_model=list[RequiredDocument],
    dependencies=[Depends(require_roles(*_ALL_ROLES))],
)
async def required_documents(
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    role: UserRole | None = None,
    loan_type_id: int | None = None,
) -> list[RequiredDocument]:
    """Documents to collect for a role (the caller's by default) and optional loan type."""
    hint = await _hint_for(session, loan_type_id)
    return kyc_service.required_documents(role or user.role, hint)


@router.get(
    "/documents",
    response_model=list[KYCDocumentResponse],
    dependencies=[Depends(require_roles(*_ALL_ROLES))],
)
async def my_documents(
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> list[KYCDocumentResponse]:
    docs = await kyc_service.list_user_documents(session, user.user_id)
    return [KYCDocumentResponse.model_validate(d) for d in docs]


@router.post(
    "/upload-url",
    response_model=UploadUrlResponse,
    dependencies=[Depends(require_roles(*_ALL_ROLES))],
)
async def upload_url(
    body: UploadUrlRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage),
) -> UploadUrlResponse:
    return await kyc_service.generate_upload_url(session, user, body.doc_type, storage)


@router.post(
    "/documents/{document_id}/complete",
    response_model=KYCDocumentResponse,
    dependencies=[Depends(require_roles(*_ALL_ROLES))],
)
async def complete_upload(
    document_id: int,
    body: CompleteUploadRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage),
) -> KYCDocumentResponse:
    doc = await kyc_service.complete_upload(session, user, document_id, body, storage)
    return KYCDocumentResponse.model_validate(doc)


# ---------------------------------------------------------------------------
# On behalf of another user
# ---------------------------------------------------------------------------


@router.post(
    "/users/{user_id}/upload-url",
    response_model=UploadUrlResponse,
    dependencies=[Depends(require_roles(*_ON_BEHALF_ROLES))],
)
async def upload_url_on_behalf(
    user_id: str,
    body: UploadUrlRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage),
) -> UploadUrlResponse:
    """Merchants may act for their linked customers; bankers and admins for anyone."""
    return await kyc_service.generate_upload_url(
        session, user, body.doc_type, storage, target_user_id=user_id
    )


@router.post(
    "/users/{user_id}/documents/{document_id}/complete",
    response_model=KYCDocumentResponse,
    dependencies=[Depends(require_roles(*_ON_BEHALF_ROLES))],
)
async def complete_upload_on_behalf(
    user_id: str,
    document_id: int,
    body: CompleteUploadRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    storage: StorageService = Depends(get_storage),
) -> KYCDocumentResponse:
    doc = await kyc_service.complete_upload(
        session, user, document_id, body, storage, target_user_id=user_id
    )
    return KYCDocumentResponse.model_validate(doc)


@router.get(
    "/users/{user_id}/status",
    response_model=KYCStatusResponse,
    dependencies=[Depends(require_roles(*_REVIEWERS))],
)
async def user_kyc_status(
    user_id: str,
    session: AsyncSession = Depends(get_db),
    loan_type_id: int | None = None,
) -> KYCStatusResponse:
    hint = await _hint_for(session, loan_type_id)
    return await kyc_service.get_kyc_status(session, user_id, hint)


@router.get(
    "/users/{user_id}/documents",
    response_model=list[KYCDocumentResponse],
    dependencies=[Depends(require_roles(*_REVIEWERS))],
)
async def user_documents(
    user_id: str,
    session: AsyncSession = Depends(get_db),
) -> list[KYCDocumentResponse]:
    docs = await kyc_service.list_user_documents(session, user_id)
    return [KYCDocumentResponse.model_validate(d) for d in docs]


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


@router.get(
    "/review",
    response_model=KYCReviewListResponse,
    dependencies=[Depends(require_roles(*_REVIEWERS))],
)
async def review_queue(
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=50, ge=1, le=200),
) -> KYCReviewListResponse:
    """Pending documents, oldest first."""
    items = await kyc_service.list_pending_for_review(session, user, offset=offset, limit=limit)
    return KYCReviewListResponse(data=items, count=len(items))


@router.get(
    "/review/{document_id}",
    response_model=KYCReviewItem,
    dependencies=[Depends(require_roles(*_REVIEWERS))],
)
async def review_item(
    document_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> KYCReviewItem:
    return await kyc_service.get_document_for_review(session, user, document_id)


@router.post(
    "/review/{document_id}",
    response_model=KYCDocumentResponse,
    dependencies=[Depends(require_roles(*_REVIEWERS))],
)
async def verify_document(
    document_id: int,
    body: VerifyKYCRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> KYCDocumentResponse:
    """Mark a pending document VERIFIED or REJECTED."""
    doc = await kyc_service.verify_kyc_document(
        session, user, document_id, body.status, body.notes, dispatcher=dispatcher
    )
    return KYCDocumentResponse.model_validate(doc)
