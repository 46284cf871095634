# This project was developed with assistance from AI tools.
"""Admin endpoints: accounts, reference data and audit trail queries."""

from fastapi import APIRouter, Depends, Query, Response, status
from lendflow_db.enums import AuditEntityType, UserRole, UserStatus
from sqlalchemy.ext.asyncio import AsyncSession

from ..dependencies import get_db
from ..middleware.auth import CurrentUser, require_roles
from ..schemas import Pagination
from ..schemas.admin import (
    AuditChainVerifyResponse,
    AuditEventItem,
    AuditEventsResponse,
    BankCreate,
    BankResponse,
    BankUpdate,
    LoanTypeCreate,
    LoanTypeResponse,
    LoanTypeUpdate,
    UserListResponse,
    UserStatusUpdate,
)
from ..schemas.profile import UserResponse
from ..services import reference as reference_service
from ..services import users as user_service
from ..services.audit import get_events_for_entity, verify_audit_chain

router = APIRouter()

_ADMIN_ONLY = [Depends(require_roles(UserRole.ADMIN))]


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------


@router.get("/users", response_model=UserListResponse, dependencies=_ADMIN_ONLY)
async def list_users(
    session: AsyncSession = Depends(get_db),
    offset: int = Query(default=0, ge=0),
    limit: int = Query(default=20, ge=1, le=100),
    role: UserRole | None = None,
    filter_status: UserStatus | None = Query(default=None, alias="status"),
    search: str | None = None,
) -> UserListResponse:
    users, total = await user_service.list_users(
        session, offset=offset, limit=limit, role=role, status=filter_status, search=search
    )
    return UserListResponse(
        data=[user_service.to_user_response(u) for u in users],
        pagination=Pagination.build(total, offset, limit),
    )


@router.patch("/users/{user_id}/status", response_model=UserResponse, dependencies=_ADMIN_ONLY)
async def update_user_status(
    user_id: str,
    body: UserStatusUpdate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> UserResponse:
    account = await user_service.update_user_status(
        session, user, user_id, body.status, body.reason
    )
    return user_service.to_user_response(account)


# ---------------------------------------------------------------------------
# Loan types
# ---------------------------------------------------------------------------


@router.get("/loan-types", response_model=list[LoanTypeResponse], dependencies=_ADMIN_ONLY)
async def list_loan_types(
    session: AsyncSession = Depends(get_db),
    bank_id: int | None = None,
) -> list[LoanTypeResponse]:
    loan_types = await reference_service.list_loan_types(session, bank_id=bank_id)
    return [reference_service.loan_type_response(lt) for lt in loan_types]


@router.post(
    "/loan-types",
    response_model=LoanTypeResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=_ADMIN_ONLY,
)
async def create_loan_type(
    body: LoanTypeCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> LoanTypeResponse:
    """Create a loan type. ``schema`` must itself be a valid JSON Schema."""
    loan_type = await reference_service.create_loan_type(session, user, body)
    return reference_service.loan_type_response(loan_type)


@router.get(
    "/loan-types/{loan_type_id}", response_model=LoanTypeResponse, dependencies=_ADMIN_ONLY
)
async def get_loan_type(
    loan_type_id: int,
    session: AsyncSession = Depends(get_db),
) -> LoanTypeResponse:
    loan_type = await reference_service.get_loan_type(session, loan_type_id)
    return reference_service.loan_type_response(loan_type)


@router.patch(
    "/loan-types/{loan_type_id}", response_model=LoanTypeResponse, dependencies=_ADMIN_ONLY
)
async def update_loan_type(
    loan_type_id: int,
    body: LoanTypeUpdate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> LoanTypeResponse:
    loan_type = await reference_service.update_loan_type(session, user, loan_type_id, body)
    return reference_service.loan_type_response(loan_type)


@router.delete(
    "/loan-types/{loan_type_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=_ADMIN_ONLY,
)
async def delete_loan_type(
    loan_type_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> Response:
    await reference_service.delete_loan_type(session, user, loan_type_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Banks
# ---------------------------------------------------------------------------


@router.get("/banks", response_model=list[BankResponse], dependencies=_ADMIN_ONLY)
async def list_banks(
    session: AsyncSession = Depends(get_db),
    loan_type_id: int | None = None,
) -> list[BankResponse]:
    banks = await reference_service.list_banks(session, loan_type_id=loan_type_id)
    return [reference_service.bank_response(b) for b in banks]


@router.post(
    "/banks",
    response_model=BankResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=_ADMIN_ONLY,
)
async def create_bank(
    body: BankCreate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> BankResponse:
    bank = await reference_service.create_bank(session, user, body)
    return reference_service.bank_response(bank)


@router.patch("/banks/{bank_id}", response_model=BankResponse, dependencies=_ADMIN_ONLY)
async def update_bank(
    bank_id: int,
    body: BankUpdate,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> BankResponse:
    bank = await reference_service.update_bank(session, user, bank_id, body)
    return reference_service.bank_response(bank)


@router.delete(
    "/banks/{bank_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    dependencies=_ADMIN_ONLY,
)
async def delete_bank(
    bank_id: int,
    user: CurrentUser,
    session: AsyncSession = Depends(get_db),
) -> Response:
    await reference_service.delete_bank(session, user, bank_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


@router.get("/audit", response_model=AuditEventsResponse, dependencies=_ADMIN_ONLY)
async def get_audit_events(
    entity_type: AuditEntityType = Query(..., description="Kind of audited entity"),
    entity_id: str = Query(..., description="Identifier of the audited entity"),
    session: AsyncSession = Depends(get_db),
) -> AuditEventsResponse:
    """Audit events for one entity, oldest first."""
    events = await get_events_for_entity(session, entity_type, entity_id)
    return AuditEventsResponse(
        count=len(events),
        events=[AuditEventItem.model_validate(e) for e in events],
    )


@router.get("/audit/verify", response_model=AuditChainVerifyResponse, dependencies=_ADMIN_ONLY)
async def verify_audit(session: AsyncSession = Depends(get_db)) -> AuditChainVerifyResponse:
    """Walk the audit hash chain and report the first break, if any."""
    result = await verify_audit_chain(session)
    return AuditChainVerifyResponse(**result)
