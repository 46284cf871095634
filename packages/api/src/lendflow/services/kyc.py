# This project was developed with assistance from AI tools.
"""KYC readiness, upload handshake and reviewer verification.

Readiness is a pure function of the user's role, an optional loan-category
hint and the statuses of their KYC documents: only VERIFIED documents
satisfy a requirement. Loans cache the result in ``kyc_status``; every
reviewer decision re-derives that cache for the owner's open loans, and
loan approval ignores the cache and recomputes.

Uploads go straight to object storage. The server creates the document row
first, hands out presigned POST parameters for ``{user_id}/{doc_type}/{id}``
and, on completion, rebuilds that key itself rather than trusting the
client's copy.
"""

import logging
import re
from collections.abc import Iterable
from datetime import UTC, datetime

from lendflow_db import KYCDocument, Loan, LoanType, User
from lendflow_db.enums import (
    AuditEntityType,
    KYCDocumentStatus,
    KYCDocumentType,
    LoanKYCStatus,
    LoanStatus,
    UserRole,
)
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.errors import (
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    ValidationFailedError,
)
from ..schemas.auth import UserContext
from ..schemas.kyc import (
    CompleteUploadRequest,
    KYCReadiness,
    KYCReviewItem,
    KYCStatusResponse,
    PresignedUpload,
    RequiredDocument,
    UploadUrlResponse,
)
from . import policy
from .audit import record_audit_event
from .notification import NotificationDispatcher
from .storage import StorageService
from .users import get_user, is_linked_customer

logger = logging.getLogger(__name__)

DOC_TYPE_DISPLAY_NAMES: dict[KYCDocumentType, str] = {
    KYCDocumentType.ID_PROOF: "Government ID (Aadhaar/Passport)",
    KYCDocumentType.ADDRESS_PROOF: "Address Proof (Utility Bill/Bank Statement)",
    KYCDocumentType.PAN_CARD: "PAN Card",
    KYCDocumentType.BANK_STATEMENT: "Bank Statement (Last 6 months)",
}

_CUSTOMER_BASE = (
    KYCDocumentType.ID_PROOF,
    KYCDocumentType.ADDRESS_PROOF,
    KYCDocumentType.PAN_CARD,
)

_LOAN_CATEGORY_EXTRAS: dict[str, tuple[KYCDocumentType, ...]] = {
    "BUSINESS": (KYCDocumentType.BANK_STATEMENT,),
    "VEHICLE": (KYCDocumentType.ADDRESS_PROOF,),
    "EQUIPMENT": (KYCDocumentType.BANK_STATEMENT,),
}

_REVIEW_DECISIONS = frozenset({KYCDocumentStatus.VERIFIED, KYCDocumentStatus.REJECTED})


# ---------------------------------------------------------------------------
# Readiness
# ---------------------------------------------------------------------------


def _role_requirements(role: UserRole) -> tuple[KYCDocumentType, ...]:
    match role:
        case UserRole.CUSTOMER:
            return _CUSTOMER_BASE
        case UserRole.MERCHANT:
            return (*_CUSTOMER_BASE, KYCDocumentType.BANK_STATEMENT)
        case UserRole.BANKER | UserRole.ADMIN:
            return ()


def loan_type_hint(loan_type: LoanType | None) -> str | None:
    """Coarse loan-category hint: the loan type's code, falling back to its name."""
    if loan_type is None:
        return None
    return (loan_type.code or loan_type.name or "").strip().upper() or None


def _category_extras(hint: str | None) -> tuple[KYCDocumentType, ...]:
    if not hint:
        return ()
    tokens = set(re.split(r"[^A-Z]+", hint.upper()))
    extras: list[KYCDocumentType] = []
    for category, doc_types in _LOAN_CATEGORY_EXTRAS.items():
        if category in tokens:
            extras.extend(doc_types)
    return tuple(extras)


def required_types(role: UserRole, hint: str | None = None) -> list[KYCDocumentType]:
    """Role base requirements unioned with loan-category extras, in stable order."""
    return list(dict.fromkeys((*_role_requirements(role), *_category_extras(hint))))


def required_documents(role: UserRole, hint: str | None = None) -> list[RequiredDocument]:
    """Checklist of documents a role must have verified, with display names."""
    return [
        RequiredDocument(doc_type=t, display_name=DOC_TYPE_DISPLAY_NAMES[t])
        for t in required_types(role, hint)
    ]


def compute_readiness(
    role: UserRole,
    hint: str | None,
    documents: Iterable[tuple[KYCDocumentType, KYCDocumentStatus]],
) -> KYCReadiness:
    """Pure readiness computation over (doc_type, status) pairs."""
    required = required_types(role, hint)
    verified = {doc_type for doc_type, status in documents if status == KYCDocumentStatus.VERIFIED}
    missing = [t for t in required if t not in verified]
    verified_count = len(required) - len(missing)
    percent = round(100 * verified_count / len(required)) if required else 0
    return KYCReadiness(
        complete=bool(required) and not missing,
        missing_types=missing,
        percent_complete=percent,
        required_types=required,
        verified_count=verified_count,
    )


async def _verified_types_by_user(
    session: AsyncSession, user_ids: Iterable[str]
) -> dict[str, list[tuple[KYCDocumentType, KYCDocumentStatus]]]:
    ids = list(set(user_ids))
    docs: dict[str, list[tuple[KYCDocumentType, KYCDocumentStatus]]] = {uid: [] for uid in ids}
    if not ids:
        return docs
    result = await session.execute(
        select(KYCDocument.user_id, KYCDocument.doc_type, KYCDocument.status).where(
            KYCDocument.user_id.in_(ids),
            KYCDocument.status == KYCDocumentStatus.VERIFIED,
        )
    )
    for user_id, doc_type, status in result.all():
        docs[user_id].append((doc_type, status))
    return docs


async def is_kyc_complete(
    session: AsyncSession,
    user_id: str,
    role: UserRole,
    loan_type_hint: str | None = None,
) -> KYCReadiness:
    """Read the user's verified documents and compute readiness. No writes."""
    docs = await _verified_types_by_user(session, [user_id])
    return compute_readiness(role, loan_type_hint, docs[user_id])


async def readiness_for_loans(
    session: AsyncSession, loans: Iterable[Loan]
) -> dict[int, KYCReadiness]:
    """Live readiness of each loan's applicant, keyed by loan id.

    Loans must have ``loan_type`` loaded.
    """
    loans = list(loans)
    if not loans:
        return {}
    applicant_ids = {loan.applicant_id for loan in loans}
    roles = dict(
        (
            await session.execute(select(User.id, User.role).where(User.id.in_(applicant_ids)))
        ).all()
    )
    docs = await _verified_types_by_user(session, applicant_ids)
    return {
        loan.id: compute_readiness(
            roles.get(loan.applicant_id, UserRole.CUSTOMER),
            loan_type_hint(loan.loan_type),
            docs[loan.applicant_id],
        )
        for loan in loans
    }


async def get_kyc_status(
    session: AsyncSession,
    user_id: str,
    loan_type_hint: str | None = None,
) -> KYCStatusResponse:
    user = await session.get(User, user_id)
    if user is None:
        raise NotFoundError("User not found")
    readiness = await is_kyc_complete(session, user.id, user.role, loan_type_hint)
    missing = set(readiness.missing_types)
    return KYCStatusResponse(
        user_id=user.id,
        readiness=readiness,
        requirements=[
            RequiredDocument(
                doc_type=t, display_name=DOC_TYPE_DISPLAY_NAMES[t], verified=t not in missing
            )
            for t in readiness.required_types
        ],
    )


async def sync_loans_kyc_status(session: AsyncSession, user_id: str) -> int:
    """Re-derive ``kyc_status`` on every open loan where the user is applicant.

    Returns the number of loans whose cached status changed. Does not commit.
    """
    user = await session.get(User, user_id)
    if user is None:
        return 0

    result = await session.execute(
        select(Loan)
        .options(selectinload(Loan.loan_type))
        .where(
            Loan.applicant_id == user_id,
            Loan.status.in_(list(LoanStatus.open_statuses())),
        )
    )
    loans = list(result.scalars().all())
    if not loans:
        return 0

    docs = (await _verified_types_by_user(session, [user_id]))[user_id]
    changed = 0
    for loan in loans:
        readiness = compute_readiness(user.role, loan_type_hint(loan.loan_type), docs)
        new_status = LoanKYCStatus.VERIFIED if readiness.complete else LoanKYCStatus.PENDING
        if loan.kyc_status != new_status:
            loan.kyc_status = new_status
            changed += 1

    await session.flush()
    if changed:
        logger.info("Synced KYC status on %d loan(s) for user %s", changed, user_id)
    return changed


# ---------------------------------------------------------------------------
# Upload handshake
# ---------------------------------------------------------------------------


async def _resolve_owner(
    session: AsyncSession,
    actor: UserContext,
    target_user_id: str | None,
) -> str:
    """Return the user whose documents are being managed, enforcing the on-behalf rule."""
    if target_user_id is None or target_user_id == actor.user_id:
        return actor.user_id

    target = await get_user(session, target_user_id)
    if target is None:
        raise NotFoundError("User not found")
    if actor.role == UserRole.MERCHANT and target.role != UserRole.CUSTOMER:
        raise NotFoundError("Customer not found")

    linked = actor.role == UserRole.MERCHANT and await is_linked_customer(
        session, actor.user_id, target
    )
    policy.ensure_can_act_on_behalf(actor, target.role, linked=linked)
    return target.id


async def generate_upload_url(
    session: AsyncSession,
    actor: UserContext,
    doc_type: KYCDocumentType,
    storage: StorageService,
    *,
    target_user_id: str | None = None,
) -> UploadUrlResponse:
    """Create an UPLOADING document row and presigned POST parameters for its key.

    Pass ``target_user_id`` to act on behalf of another user.
    """
    owner_id = await _resolve_owner(session, actor, target_user_id)

    doc = KYCDocument(
        user_id=owner_id,
        doc_type=doc_type,
        status=KYCDocumentStatus.UPLOADING,
        uploaded_by=actor.user_id,
    )
    session.add(doc)
    await session.flush()
    doc.storage_key = StorageService.build_kyc_object_key(owner_id, doc_type.value, doc.id)

    signed = await storage.generate_upload_signature(
        doc.storage_key,
        max_size=settings.KYC_MAX_FILE_SIZE,
        expires_in=settings.UPLOAD_URL_EXPIRES,
    )
    await session.commit()

    return UploadUrlResponse(
        document_id=doc.id,
        storage_key=doc.storage_key,
        upload=PresignedUpload(url=signed["url"], fields=signed["fields"]),
        expires_in=settings.UPLOAD_URL_EXPIRES,
        instructions=(
            "POST the file as multipart/form-data to `url` with every entry of `fields`, "
            f"then call complete-upload. Max size {settings.KYC_MAX_FILE_SIZE} bytes; "
            f"allowed types: {', '.join(settings.KYC_ALLOWED_CONTENT_TYPES)}."
        ),
    )


async def complete_upload(
    session: AsyncSession,
    actor: UserContext,
    document_id: int,
    request: CompleteUploadRequest,
    storage: StorageService,
    *,
    target_user_id: str | None = None,
) -> KYCDocument:
    """Finish an upload: rebuild the storage key, check size/type, move to PENDING."""
    owner_id = await _resolve_owner(session, actor, target_user_id)

    doc = await session.get(KYCDocument, document_id)
    if doc is None:
        raise NotFoundError("KYC document not found")
    if doc.user_id != owner_id:
        if target_user_id is None:
            raise ForbiddenError("Cannot complete another user's upload")
        raise NotFoundError("KYC document not found")
    if doc.status != KYCDocumentStatus.UPLOADING:
        raise InvalidStateTransitionError(
            f"Document is already {doc.status.value}; request a new upload URL"
        )

    expected_key = StorageService.build_kyc_object_key(doc.user_id, doc.doc_type.value, doc.id)
    if request.storage_key and request.storage_key != expected_key:
        logger.warning(
            "KYC storage key mismatch for document %s: client=%s expected=%s (actor=%s)",
            doc.id,
            request.storage_key,
            expected_key,
            actor.user_id,
        )

    if request.size_bytes <= 0:
        raise ValidationFailedError(
            "Uploaded file is empty", [{"field": "size_bytes", "message": "must be > 0"}]
        )
    if request.size_bytes > settings.KYC_MAX_FILE_SIZE:
        raise PayloadTooLargeError(
            f"File exceeds the {settings.KYC_MAX_FILE_SIZE} byte limit",
            details={"max_size": settings.KYC_MAX_FILE_SIZE, "size": request.size_bytes},
        )
    if request.content_type not in settings.KYC_ALLOWED_CONTENT_TYPES:
        raise UnsupportedMediaTypeError(
            f"Content type {request.content_type!r} is not accepted",
            details={"allowed": settings.KYC_ALLOWED_CONTENT_TYPES},
        )
    if not await storage.exists(expected_key):
        raise ValidationFailedError(
            "Upload not found in storage",
            [{"field": "storage_key", "message": "object does not exist"}],
        )

    doc.storage_key = expected_key
    doc.content_type = request.content_type
    doc.size_bytes = request.size_bytes
    doc.status = KYCDocumentStatus.PENDING
    doc.verified_by = None

    await record_audit_event(
        session,
        actor,
        event_type="DOCUMENT_UPLOADED",
        entity_type=AuditEntityType.KYC_DOCUMENT,
        entity_id=doc.id,
        details=f"{doc.doc_type.value} uploaded for user {doc.user_id}",
        event_data={"doc_type": doc.doc_type.value, "owner_id": doc.user_id},
    )
    await session.commit()
    return doc


# ---------------------------------------------------------------------------
# Review
# ---------------------------------------------------------------------------


async def verify_kyc_document(
    session: AsyncSession,
    reviewer: UserContext,
    document_id: int,
    status: KYCDocumentStatus,
    notes: str | None,
    *,
    dispatcher: NotificationDispatcher,
) -> KYCDocument:
    """Record a reviewer decision and re-sync the owner's open loans."""
    policy.ensure_can_review_kyc(reviewer)
    if status not in _REVIEW_DECISIONS:
        raise ValidationFailedError(
            "Review status must be VERIFIED or REJECTED",
            [{"field": "status", "message": f"{status.value} is not a review decision"}],
        )

    doc = await session.get(KYCDocument, document_id)
    if doc is None:
        raise NotFoundError("KYC document not found")
    if doc.status == KYCDocumentStatus.UPLOADING:
        raise InvalidStateTransitionError("Document upload has not been completed")

    doc.status = status
    doc.verified_by = reviewer.user_id if status == KYCDocumentStatus.VERIFIED else None
    doc.review_notes = notes

    await record_audit_event(
        session,
        reviewer,
        event_type=f"KYC_{status.value}",
        entity_type=AuditEntityType.KYC_DOCUMENT,
        entity_id=doc.id,
        details=notes,
        event_data={"doc_type": doc.doc_type.value, "owner_id": doc.user_id},
    )
    await sync_loans_kyc_status(session, doc.user_id)
    await session.commit()

    owner = await session.get(User, doc.user_id)
    label = DOC_TYPE_DISPLAY_NAMES[doc.doc_type]
    verdict = "verified" if status == KYCDocumentStatus.VERIFIED else "rejected"
    message = f"Your {label} has been {verdict}."
    if notes and status == KYCDocumentStatus.REJECTED:
        message += f" Reason: {notes}"
    dispatcher.notify([doc.user_id], "KYC_UPDATE", message)
    dispatcher.send_email(
        owner.email if owner else None,
        "kyc_update",
        {"name": owner.name if owner else "", "document": label, "status": verdict, "notes": notes},
    )
    return doc


async def list_user_documents(session: AsyncSession, user_id: str) -> list[KYCDocument]:
    result = await session.execute(
        select(KYCDocument)
        .where(KYCDocument.user_id == user_id)
        .order_by(KYCDocument.created_at.desc(), KYCDocument.id.desc())
    )
    return list(result.scalars().all())


def _age_in_days(created_at: datetime, now: datetime) -> int:
    if created_at.tzinfo is None:
        created_at = created_at.replace(tzinfo=UTC)
    return max((now - created_at).days, 0)


def _review_item(doc: KYCDocument, owner: User | None, now: datetime) -> KYCReviewItem:
    days = _age_in_days(doc.created_at, now)
    return KYCReviewItem.model_validate(doc).model_copy(
        update={
            "user_name": owner.name if owner else None,
            "user_email": owner.email if owner else None,
            "user_role": owner.role.value if owner else None,
            "days_pending": days,
            "is_overdue": days > settings.KYC_REVIEW_OVERDUE_DAYS,
        }
    )


async def list_pending_for_review(
    session: AsyncSession,
    reviewer: UserContext,
    *,
    offset: int = 0,
    limit: int = 50,
) -> list[KYCReviewItem]:
    """Pending documents, oldest first, with age and owner details."""
    policy.ensure_can_review_kyc(reviewer)
    result = await session.execute(
        select(KYCDocument, User)
        .join(User, User.id == KYCDocument.user_id)
        .where(KYCDocument.status == KYCDocumentStatus.PENDING)
        .order_by(KYCDocument.created_at.asc(), KYCDocument.id.asc())
        .offset(offset)
        .limit(limit)
    )
    now = datetime.now(UTC)
    return [_review_item(doc, owner, now) for doc, owner in result.all()]


async def get_document_for_review(
    session: AsyncSession,
    reviewer: UserContext,
    document_id: int,
) -> KYCReviewItem:
    policy.ensure_can_review_kyc(reviewer)
    doc = await session.get(KYCDocument, document_id)
    if doc is None:
        raise NotFoundError("KYC document not found")
    owner = await session.get(User, doc.user_id)
    return _review_item(doc, owner, datetime.now(UTC))
