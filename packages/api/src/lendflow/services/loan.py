# This project was developed with assistance from AI tools.
"""Loan lifecycle engine.

Owns the loan state machine (``LoanStatus.valid_transitions``): apply,
assign, approve (KYC-gated), reject, disburse, cancel. Each mutation is one
transaction holding the status change and its audit row. Preconditions are
checked up front for a clear error and re-checked at write time by a
conditional UPDATE, so of two racing decisions on the same loan exactly one
wins. Notifications are dispatched after commit and cannot fail the call.
"""

import logging
import uuid
from datetime import UTC, datetime
from decimal import Decimal

from lendflow_db import CustomerProfile, Loan, LoanDocument, LoanType, User
from lendflow_db.enums import (
    AuditEntityType,
    LoanKYCStatus,
    LoanStatus,
    UserRole,
    UserStatus,
)
from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.errors import (
    ConflictError,
    DocumentVerificationFailedError,
    ForbiddenError,
    InvalidStateTransitionError,
    KYCIncompleteError,
    MissingDocumentsError,
    NotFoundError,
    ValidationFailedError,
)
from ..schemas.auth import UserContext
from ..schemas.kyc import PresignedUpload
from ..schemas.loan import (
    ExistingApplicant,
    LoanApplyRequest,
    LoanDocumentUploadResponse,
    NewApplicant,
    SelfApplicant,
)
from . import kyc as kyc_service
from . import policy
from .audit import record_audit_event
from .notification import NotificationDispatcher
from .ownership import DocumentOwnershipVerifier
from .schema_validation import validate_instance
from .scope import apply_loan_scope, banker_pincode
from .storage import StorageService
from .users import get_user, get_user_by_email, issue_email_verification

logger = logging.getLogger(__name__)

_LOAN_OPTIONS = (selectinload(Loan.documents), selectinload(Loan.loan_type))


def _sources(target: LoanStatus) -> frozenset[LoanStatus]:
    """Statuses from which ``target`` is reachable in one step."""
    return frozenset(
        status for status, targets in LoanStatus.valid_transitions().items() if target in targets
    )


_ASSIGNABLE = _sources(LoanStatus.UNDER_REVIEW)
_DECIDABLE = _sources(LoanStatus.APPROVED) & _sources(LoanStatus.REJECTED)
_DISBURSABLE = _sources(LoanStatus.DISBURSED)
_CANCELLABLE = _sources(LoanStatus.CANCELLED)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _load_loan(session: AsyncSession, loan_id: int, *, refresh: bool = False) -> Loan:
    stmt = select(Loan).options(*_LOAN_OPTIONS).where(Loan.id == loan_id)
    if refresh:
        stmt = stmt.execution_options(populate_existing=True)
    loan = (await session.execute(stmt)).scalar_one_or_none()
    if loan is None:
        raise NotFoundError("Loan not found")
    return loan


def _ensure_status(loan: Loan, allowed: frozenset[LoanStatus], action: str) -> None:
    if loan.status not in allowed:
        raise InvalidStateTransitionError(
            f"Cannot {action} a loan in status '{loan.status.value}'. "
            f"Allowed: {sorted(s.value for s in allowed)}.",
            details={"status": loan.status.value, "allowed": sorted(s.value for s in allowed)},
        )


async def _conditional_update(
    session: AsyncSession,
    loan: Loan,
    *,
    from_statuses: frozenset[LoanStatus],
    action: str,
    assigned_banker: str | None = None,
    **values,
) -> Loan:
    """Apply ``values`` only if the loan is still in ``from_statuses`` (and still
    assigned to ``assigned_banker`` when given); otherwise a concurrent writer won."""
    loan_id = loan.id
    stmt = update(Loan).where(Loan.id == loan_id, Loan.status.in_(list(from_statuses)))
    if assigned_banker is not None:
        stmt = stmt.where(Loan.banker_id == assigned_banker)
    stmt = stmt.values(**values).execution_options(synchronize_session=False)

    result = await session.execute(stmt)
    if result.rowcount != 1:
        await session.rollback()
        current = await _load_loan(session, loan_id, refresh=True)
        raise InvalidStateTransitionError(
            f"Cannot {action}: loan changed concurrently (now '{current.status.value}')",
            details={"status": current.status.value},
        )
    return await _load_loan(session, loan_id, refresh=True)


def _parties(loan: Loan) -> list[str]:
    """Applicant plus the submitting merchant when distinct."""
    recipients = [loan.applicant_id]
    if loan.merchant_id and loan.merchant_id != loan.applicant_id:
        recipients.append(loan.merchant_id)
    return recipients


def _field_error(field: str, message: str) -> list[dict[str, str]]:
    return [{"field": field, "message": message}]


def _validate_terms(amount: Decimal, tenor_months: int) -> None:
    errors = []
    if amount is None or amount <= 0:
        errors += _field_error("amount", "must be greater than 0")
    if tenor_months is None or tenor_months <= 0:
        errors += _field_error("tenor_months", "must be greater than 0")
    if errors:
        raise ValidationFailedError("Invalid loan terms", errors)


# ---------------------------------------------------------------------------
# Reads
# ---------------------------------------------------------------------------


async def _scoped(session: AsyncSession, stmt, user: UserContext):
    pincode = None
    if user.role == UserRole.BANKER:
        pincode = await banker_pincode(session, user.user_id)
    return apply_loan_scope(stmt, user.data_scope, pincode=pincode)


async def get_loan(session: AsyncSession, user: UserContext, loan_id: int) -> Loan:
    """Return a loan visible to the caller.

    Raises NotFoundError for unknown ids and ForbiddenError for loans that
    exist outside the caller's scope.
    """
    stmt = select(Loan).options(*_LOAN_OPTIONS).where(Loan.id == loan_id)
    stmt = await _scoped(session, stmt, user)
    loan = (await session.execute(stmt)).scalar_one_or_none()
    if loan is not None:
        return loan

    exists = (await session.execute(select(Loan.id).where(Loan.id == loan_id))).scalar()
    if exists is None:
        raise NotFoundError("Loan not found")
    logger.warning("Loan %s access denied for user=%s", loan_id, user.user_id)
    raise ForbiddenError("You do not have access to this loan")


async def list_loans(
    session: AsyncSession,
    user: UserContext,
    *,
    offset: int = 0,
    limit: int = 20,
    status: LoanStatus | None = None,
    merchant_id: str | None = None,
    banker_id: str | None = None,
) -> tuple[list[Loan], int]:
    """Return loans visible to the current user, newest first."""
    filters = []
    if status is not None:
        filters.append(Loan.status == status)
    if merchant_id is not None:
        filters.append(Loan.merchant_id == merchant_id)
    if banker_id is not None:
        filters.append(Loan.banker_id == banker_id)

    count_stmt = await _scoped(session, select(func.count(Loan.id)).where(*filters), user)
    total = (await session.execute(count_stmt)).scalar() or 0

    stmt = (
        select(Loan)
        .options(*_LOAN_OPTIONS)
        .where(*filters)
        .order_by(Loan.created_at.desc(), Loan.id.desc())
        .offset(offset)
        .limit(limit)
    )
    stmt = await _scoped(session, stmt, user)
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


# ---------------------------------------------------------------------------
# Apply
# ---------------------------------------------------------------------------


async def _resolve_applicant(
    session: AsyncSession,
    merchant: User,
    applicant: SelfApplicant | ExistingApplicant | NewApplicant,
) -> tuple[str, NewApplicant | None]:
    """Return (beneficiary id, new-customer details or None). Performs no writes."""
    match applicant:
        case SelfApplicant():
            return merchant.id, None
        case ExistingApplicant(customer_id=customer_id):
            customer = await session.get(User, customer_id)
            if customer is None or customer.role != UserRole.CUSTOMER:
                raise NotFoundError("Customer not found")
            return customer.id, None
        case NewApplicant():
            if await get_user_by_email(session, applicant.email) is not None:
                raise ConflictError(
                    "A user with this email already exists", details={"field": "email"}
                )
            return str(uuid.uuid4()), applicant


def _build_customer(customer_id: str, applicant: NewApplicant, merchant: User) -> tuple[User, str]:
    customer = User(
        id=customer_id,
        role=UserRole.CUSTOMER,
        name=applicant.name,
        email=applicant.email,
        phone=applicant.phone,
        status=UserStatus.PENDING,
        is_email_verified=False,
    )
    token = issue_email_verification(customer)
    customer.customer_profile = CustomerProfile(
        address=applicant.address,
        pincode=applicant.pincode,
        merchant_id=merchant.merchant_profile.id if merchant.merchant_profile else None,
    )
    return customer, token


async def apply_for_loan(
    session: AsyncSession,
    user: UserContext,
    request: LoanApplyRequest,
    *,
    verifier: DocumentOwnershipVerifier,
    dispatcher: NotificationDispatcher,
) -> Loan:
    """Submit a loan application on behalf of the calling merchant.

    Every check (loan type, terms, metadata schema, required documents,
    applicant, document ownership) runs before anything is written; the
    loan, its documents, any new customer and the LOAN_APPLIED audit row
    then commit together.
    """
    policy.ensure_can_apply(user)

    merchant = await get_user(session, user.user_id)
    if merchant is None:
        raise NotFoundError("Merchant account not found")

    loan_type = await session.get(LoanType, request.loan_type_id)
    if loan_type is None:
        raise NotFoundError("Loan type not found")

    _validate_terms(request.amount, request.tenor_months)

    metadata_errors = validate_instance(loan_type.schema, request.metadata)
    if metadata_errors:
        raise ValidationFailedError("Loan metadata failed validation", metadata_errors)

    submitted_types = {doc.doc_type for doc in request.documents}
    missing = [t for t in (loan_type.required_documents or []) if t not in submitted_types]
    if missing:
        raise MissingDocumentsError(missing)

    applicant_id, new_customer = await _resolve_applicant(session, merchant, request.applicant)

    failed = await verifier.verify_many(
        [doc.storage_key for doc in request.documents],
        [merchant.id, applicant_id],
    )
    if failed:
        raise DocumentVerificationFailedError(failed)

    loan = Loan(
        loan_type_id=loan_type.id,
        applicant_id=applicant_id,
        merchant_id=merchant.id,
        amount=request.amount,
        tenor_months=request.tenor_months,
        loan_metadata=dict(request.metadata),
        status=LoanStatus.SUBMITTED,
        kyc_status=LoanKYCStatus.PENDING,
        documents=[
            LoanDocument(
                doc_type=doc.doc_type,
                storage_key=doc.storage_key,
                secure_url=doc.secure_url,
                filename=doc.filename,
                content_type=doc.content_type,
                size_bytes=doc.size_bytes,
                uploaded_by=merchant.id,
            )
            for doc in request.documents
        ],
    )
    verification_token = None
    try:
        if new_customer is not None:
            customer, verification_token = _build_customer(applicant_id, new_customer, merchant)
            # the users row must exist before the loan references it
            session.add(customer)
            await session.flush()
        session.add(loan)
        await session.flush()
        await record_audit_event(
            session,
            user,
            event_type="LOAN_APPLIED",
            entity_type=AuditEntityType.LOAN,
            entity_id=loan.id,
            loan_id=loan.id,
            details=(
                f"Applied for {loan_type.name}: "
                f"{request.amount} over {request.tenor_months} months"
            ),
            event_data={
                "loan_type_id": loan_type.id,
                "applicant_id": applicant_id,
                "amount": str(request.amount),
                "tenor_months": request.tenor_months,
                "documents": len(request.documents),
                "new_customer": new_customer is not None,
            },
        )
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError("Application conflicts with existing data") from exc

    logger.info(
        "Loan %s submitted by merchant=%s applicant=%s", loan.id, merchant.id, applicant_id
    )

    if new_customer is not None:
        dispatcher.send_email(
            new_customer.email,
            "email_verification",
            {
                "name": new_customer.name,
                "merchant": merchant.name,
                "verify_url": f"{settings.FRONTEND_URL}/verify-email?token={verification_token}",
            },
        )

    return await _load_loan(session, loan.id, refresh=True)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


async def assign_banker(
    session: AsyncSession,
    user: UserContext,
    loan_id: int,
    banker_id: str,
    *,
    dispatcher: NotificationDispatcher,
) -> Loan:
    """Assign (or reassign) the reviewing banker; the loan moves to UNDER_REVIEW.

    Reassignment records the previous banker in the audit row and notifies them.
    """
    loan = await _load_loan(session, loan_id)
    _ensure_status(loan, _ASSIGNABLE, "assign a banker to")
    policy.ensure_can_assign(user)

    banker = await get_user(session, banker_id)
    if banker is None or banker.role != UserRole.BANKER:
        raise NotFoundError("Banker not found")
    if banker.status != UserStatus.ACTIVE or (
        banker.banker_profile is not None and not banker.banker_profile.is_active
    ):
        raise ForbiddenError("Banker account is not active")

    previous_banker_id = loan.banker_id
    loan = await _conditional_update(
        session,
        loan,
        from_statuses=_ASSIGNABLE,
        action="assign a banker",
        banker_id=banker.id,
        status=LoanStatus.UNDER_REVIEW,
    )
    handoff = previous_banker_id is not None and previous_banker_id != banker.id
    await record_audit_event(
        session,
        user,
        event_type="BANKER_ASSIGNED",
        entity_type=AuditEntityType.LOAN,
        entity_id=loan.id,
        loan_id=loan.id,
        details=(
            f"Reassigned from {previous_banker_id} to {banker.name}"
            if handoff
            else f"Assigned to {banker.name}"
        ),
        event_data={"banker_id": banker.id, "previous_banker_id": previous_banker_id},
    )
    await session.commit()

    dispatcher.notify([banker.id], "LOAN_ASSIGNED", f"Loan #{loan.id} has been assigned to you.")
    if handoff:
        dispatcher.notify(
            [previous_banker_id],
            "LOAN_REASSIGNED",
            f"Loan #{loan.id} has been reassigned to another banker.",
        )
    return loan


async def approve_loan(
    session: AsyncSession,
    user: UserContext,
    loan_id: int,
    *,
    interest_rate: Decimal | None,
    notes: str | None,
    dispatcher: NotificationDispatcher,
) -> Loan:
    """Approve an UNDER_REVIEW loan. Only the assigned banker; applicant KYC must be complete."""
    loan = await _load_loan(session, loan_id)
    _ensure_status(loan, _DECIDABLE, "approve")
    policy.ensure_assigned_banker(user, loan, "approve")

    if interest_rate is None or interest_rate <= 0:
        raise ValidationFailedError(
            "Interest rate must be greater than 0",
            _field_error("interest_rate", "must be greater than 0"),
        )

    applicant = await session.get(User, loan.applicant_id)
    if applicant is None:
        raise NotFoundError("Applicant not found")
    readiness = await kyc_service.is_kyc_complete(
        session, applicant.id, applicant.role, kyc_service.loan_type_hint(loan.loan_type)
    )
    if not readiness.complete:
        raise KYCIncompleteError(
            [t.value for t in readiness.missing_types], readiness.percent_complete
        )

    loan = await _conditional_update(
        session,
        loan,
        from_statuses=_DECIDABLE,
        action="approve",
        assigned_banker=user.user_id,
        status=LoanStatus.APPROVED,
        kyc_status=LoanKYCStatus.VERIFIED,
        interest_rate=interest_rate,
    )
    await record_audit_event(
        session,
        user,
        event_type="LOAN_APPROVED",
        entity_type=AuditEntityType.LOAN,
        entity_id=loan.id,
        loan_id=loan.id,
        details=f"Rate: {interest_rate}%, Notes: {notes or 'N/A'}",
        event_data={"interest_rate": str(interest_rate), "notes": notes},
    )
    await session.commit()

    dispatcher.notify(
        _parties(loan),
        "LOAN_APPROVED",
        f"Loan #{loan.id} has been approved at {interest_rate}% interest.",
    )
    return loan


async def reject_loan(
    session: AsyncSession,
    user: UserContext,
    loan_id: int,
    *,
    notes: str | None,
    dispatcher: NotificationDispatcher,
) -> Loan:
    """Reject an UNDER_REVIEW loan. A reason is mandatory."""
    loan = await _load_loan(session, loan_id)
    _ensure_status(loan, _DECIDABLE, "reject")
    policy.ensure_assigned_banker(user, loan, "reject")

    if not notes or not notes.strip():
        raise ValidationFailedError(
            "A rejection reason is required", _field_error("notes", "must not be empty")
        )

    loan = await _conditional_update(
        session,
        loan,
        from_statuses=_DECIDABLE,
        action="reject",
        assigned_banker=user.user_id,
        status=LoanStatus.REJECTED,
    )
    await record_audit_event(
        session,
        user,
        event_type="LOAN_REJECTED",
        entity_type=AuditEntityType.LOAN,
        entity_id=loan.id,
        loan_id=loan.id,
        details=notes,
        event_data={"notes": notes},
    )
    await session.commit()

    dispatcher.notify(
        _parties(loan), "LOAN_REJECTED", f"Loan #{loan.id} has been rejected. Reason: {notes}"
    )
    return loan


async def disburse_loan(
    session: AsyncSession,
    user: UserContext,
    loan_id: int,
    *,
    reference_id: str | None,
    notes: str | None,
    dispatcher: NotificationDispatcher,
) -> Loan:
    """Disburse an APPROVED loan and merge the settlement record into its metadata."""
    loan = await _load_loan(session, loan_id)
    _ensure_status(loan, _DISBURSABLE, "disburse")
    policy.ensure_assigned_banker(user, loan, "disburse")

    if not reference_id or not reference_id.strip():
        raise ValidationFailedError(
            "A disbursement reference is required",
            _field_error("reference_id", "must not be empty"),
        )

    disbursed_at = datetime.now(UTC)
    metadata = {
        **(loan.loan_metadata or {}),
        "disbursement": {
            "reference_id": reference_id,
            "notes": notes,
            "disbursed_at": disbursed_at.isoformat(),
        },
    }
    loan = await _conditional_update(
        session,
        loan,
        from_statuses=_DISBURSABLE,
        action="disburse",
        assigned_banker=user.user_id,
        status=LoanStatus.DISBURSED,
        loan_metadata=metadata,
    )
    await record_audit_event(
        session,
        user,
        event_type="LOAN_DISBURSED",
        entity_type=AuditEntityType.LOAN,
        entity_id=loan.id,
        loan_id=loan.id,
        details=f"Ref: {reference_id}",
        event_data={"reference_id": reference_id, "notes": notes},
    )
    await session.commit()

    dispatcher.notify(
        _parties(loan),
        "LOAN_DISBURSED",
        f"Loan #{loan.id} has been disbursed. Reference: {reference_id}",
    )
    return loan


async def cancel_loan(
    session: AsyncSession,
    user: UserContext,
    loan_id: int,
    *,
    reason: str | None,
) -> Loan:
    """Cancel a loan before disbursement. Applicant or submitting merchant only."""
    loan = await _load_loan(session, loan_id)
    policy.ensure_can_cancel(user, loan)
    _ensure_status(loan, _CANCELLABLE, "cancel")

    loan = await _conditional_update(
        session,
        loan,
        from_statuses=_CANCELLABLE,
        action="cancel",
        status=LoanStatus.CANCELLED,
        interest_rate=None,
    )
    await record_audit_event(
        session,
        user,
        event_type="LOAN_CANCELLED",
        entity_type=AuditEntityType.LOAN,
        entity_id=loan.id,
        loan_id=loan.id,
        details=reason or "Cancelled by user",
        event_data={"reason": reason},
    )
    await session.commit()
    return loan


async def generate_document_upload_url(
    user: UserContext, filename: str, storage: StorageService
) -> LoanDocumentUploadResponse:
    """Presigned POST for a supporting document under the merchant's key prefix."""
    policy.ensure_can_apply(user)
    key = StorageService.build_loan_document_key(user.user_id, filename)
    signed = await storage.generate_upload_signature(
        key,
        max_size=settings.LOAN_DOCUMENT_MAX_FILE_SIZE,
        expires_in=settings.UPLOAD_URL_EXPIRES,
    )
    return LoanDocumentUploadResponse(
        storage_key=key,
        upload=PresignedUpload(url=signed["url"], fields=signed["fields"]),
        expires_in=settings.UPLOAD_URL_EXPIRES,
    )
