# This project was developed with assistance from AI tools.
"""Loan lifecycle routes with RBAC enforcement."""

from fastapi import APIRouter, Depends, Query, status
from lendflow_db import Loan
from lendflow_db.enums import LoanStatus, UserRole
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db, get_dispatcher, get_storage, get_verifier
from ..middleware.auth import CurrentUser, require_roles
from ..schemas import Pagination
from ..schemas.admin import AuditEventItem, AuditEventsResponse
from ..schemas.kyc import KYCReadiness
from ..schemas.loan import (
    ApproveLoanRequest,
    AssignBankerRequest,
    CancelLoanRequest,
    DisburseLoanRequest,
    LoanApplyRequest,
    LoanDocumentUploadRequest,
    LoanDocumentUploadResponse,
    LoanListResponse,
    LoanResponse,
    RejectLoanRequest,
)
from ..services import kyc as kyc_service
from ..services import loan as loan_service
from ..services.audit import get_events_for_loan
from ..services.notification import NotificationDispatcher
from ..services.ownership import DocumentOwnershipVerifier
from ..services.storage import StorageService

router = APIRouter()

_ALL_ROLES = (UserRole.CUSTOMER, UserRole.MERCHANT, UserRole.BANKER, UserRole.ADMIN)
_REVIEWERS = (UserRole.BANKER, UserRole.ADMIN)


def _build_loan_response(loan: Loan, readiness: KYCReadiness | None = None) -> LoanResponse:
    response = LoanResponse.model_validate(loan)
    response.kyc_readiness = readiness
    return response


async def _with_readiness(session: AsyncSession, loan: Loan) -> LoanResponse:
    readiness = await kyc_service.readiness_for_loans(session, [loan])
    return _build_loan_response(loan, readiness.get(loan.id))


@router.post(
    "/",
    response_model=LoanResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(require_roles(UserRole.MERCHANT))],
)
async def apply_for_loan(
    body: LoanApplyRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    verifier: DocumentOwnershipVerifier = Depends(get_verifier),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> LoanResponse:
    """Submit a loan application for the merchant itself or a customer."""
    loan = await loan_service.apply_for_loan(
        session, user, body, verifier=verifier, dispatcher=dispatcher
    )
    return await _with_readiness(session, loan)


@router.post(
    "/documents/upload-url",
    response_model=LoanDocumentUploadResponse,
    dependencies=[Depends(require_roles(UserRole.MERCHANT))],
)
async def loan_document_upload_url(
    body: LoanDocumentUploadRequest,
    user: CurrentUser,
    storage: StorageService = Depends(get_storage),
) -> LoanDocumentUploadResponse:
    """Presigned upload for a supporting document referenced later by ``apply``."""
    return await loan_service.generate_document_upload_url(user, body.filename, storage)


@router.get(
    "/",
    response_model=LoanListResponse,
    dependencies=[Depends(require_roles(*_ALL_ROLES))],
)
async def list_loans(
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    filter_status: LoanStatus | None = Query(default=None, alias="status"),
    merchant_id: str | None = None,
    banker_id: str | None = None,
) -> LoanListResponse:
    """List loans visible to the current user's role and data scope."""
    loans, total = await loan_service.list_loans(
        session,
        user,
        offset=offset,
        limit=limit,
        status=filter_status,
        merchant_id=merchant_id,
        banker_id=banker_id,
    )
    readiness = await kyc_service.readiness_for_loans(session, loans)
    return LoanListResponse(
        data=[_build_loan_response(loan, readiness.get(loan.id)) for loan in loans],
        pagination=Pagination.build(total, offset, limit),
    )


@router.get(
    "/{loan_id}",
    response_model=LoanResponse,
    dependencies=[Depends(require_roles(*_ALL_ROLES))],
)
async def get_loan(
    loan_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> LoanResponse:
    loan = await loan_service.get_loan(session, user, loan_id)
    return await _with_readiness(session, loan)


@router.get(
    "/{loan_id}/audit",
    response_model=AuditEventsResponse,
    dependencies=[Depends(require_roles(*_ALL_ROLES))],
)
async def get_loan_audit_trail(
    loan_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> AuditEventsResponse:
    """Audit trail of a loan the caller can see, oldest first."""
    await loan_service.get_loan(session, user, loan_id)
    events = await get_events_for_loan(session, loan_id)
    return AuditEventsResponse(
        count=len(events),
        events=[AuditEventItem.model_validate(e) for e in events],
    )


@router.post(
    "/{loan_id}/assign",
    response_model=LoanResponse,
    dependencies=[Depends(require_roles(*_REVIEWERS))],
)
async def assign_banker(
    loan_id: int,
    body: AssignBankerRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> LoanResponse:
    loan = await loan_service.assign_banker(
        session, user, loan_id, body.banker_id, dispatcher=dispatcher
    )
    return await _with_readiness(session, loan)


@router.post(
    "/{loan_id}/approve",
    response_model=LoanResponse,
    dependencies=[Depends(require_roles(UserRole.BANKER))],
)
async def approve_loan(
    loan_id: int,
    body: ApproveLoanRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> LoanResponse:
    """Approve a loan under review. Fails with KYC_INCOMPLETE until the applicant is verified."""
    loan = await loan_service.approve_loan(
        session,
        user,
        loan_id,
        interest_rate=body.interest_rate,
        notes=body.notes,
        dispatcher=dispatcher,
    )
    return await _with_readiness(session, loan)


@router.post(
    "/{loan_id}/reject",
    response_model=LoanResponse,
    dependencies=[Depends(require_roles(UserRole.BANKER))],
)
async def reject_loan(
    loan_id: int,
    body: RejectLoanRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> LoanResponse:
    loan = await loan_service.reject_loan(
        session, user, loan_id, notes=body.notes, dispatcher=dispatcher
    )
    return await _with_readiness(session, loan)


@router.post(
    "/{loan_id}/disburse",
    response_model=LoanResponse,
    dependencies=[Depends(require_roles(UserRole.BANKER))],
)
async def disburse_loan(
    loan_id: int,
    body: DisburseLoanRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
) -> LoanResponse:
    loan = await loan_service.disburse_loan(
        session,
        user,
        loan_id,
        reference_id=body.reference_id,
        notes=body.notes,
        dispatcher=dispatcher,
    )
    return await _with_readiness(session, loan)


@router.post(
    "/{loan_id}/cancel",
    response_model=LoanResponse,
    dependencies=[Depends(require_roles(UserRole.CUSTOMER, UserRole.MERCHANT))],
)
async def cancel_loan(
    loan_id: int,
    body: CancelLoanRequest,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> LoanResponse:
    loan = await loan_service.cancel_loan(session, user, loan_id, reason=body.reason)
    return await _with_readiness(session, loan)
