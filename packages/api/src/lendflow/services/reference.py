# This project was developed with assistance from AI tools.
"""Reference data: loan types (with their metadata JSON Schema) and banks."""

import logging

from lendflow_db import Bank, BankerProfile, Loan, LoanType
from lendflow_db.enums import AuditEntityType
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.errors import ConflictError, NotFoundError, ValidationFailedError
from ..schemas.admin import (
    BankCreate,
    BankResponse,
    BankUpdate,
    LoanTypeCreate,
    LoanTypeResponse,
    LoanTypeUpdate,
)
from ..schemas.auth import UserContext
from .audit import record_audit_event
from .schema_validation import check_schema

logger = logging.getLogger(__name__)


def loan_type_response(loan_type: LoanType) -> LoanTypeResponse:
    """Build the response model; ``banks`` must be loaded."""
    return LoanTypeResponse(
        id=loan_type.id,
        name=loan_type.name,
        code=loan_type.code,
        description=loan_type.description,
        interest_rate_min=loan_type.interest_rate_min,
        interest_rate_max=loan_type.interest_rate_max,
        tenor_min_months=loan_type.tenor_min_months,
        tenor_max_months=loan_type.tenor_max_months,
        amount_min=loan_type.amount_min,
        amount_max=loan_type.amount_max,
        schema_=loan_type.schema,
        required_documents=list(loan_type.required_documents or []),
        bank_ids=sorted(b.id for b in loan_type.banks),
        created_at=loan_type.created_at,
        updated_at=loan_type.updated_at,
    )


def bank_response(bank: Bank) -> BankResponse:
    """Build the response model; ``loan_types`` and ``bankers`` must be loaded."""
    return BankResponse(
        id=bank.id,
        name=bank.name,
        loan_type_ids=sorted(lt.id for lt in bank.loan_types),
        banker_count=len(bank.bankers),
        created_at=bank.created_at,
    )


def _ensure_valid_schema(schema: dict | None) -> None:
    if schema is None:
        return
    errors = check_schema(schema)
    if errors:
        raise ValidationFailedError("Loan type schema is not a valid JSON Schema", errors)


async def _commit_or_conflict(session: AsyncSession, message: str) -> None:
    try:
        await session.commit()
    except IntegrityError as exc:
        await session.rollback()
        raise ConflictError(message) from exc


# ---------------------------------------------------------------------------
# Loan types
# ---------------------------------------------------------------------------


async def _load_banks(session: AsyncSession, bank_ids: list[int]) -> list[Bank]:
    if not bank_ids:
        return []
    result = await session.execute(select(Bank).where(Bank.id.in_(bank_ids)))
    banks = list(result.scalars().all())
    unknown = sorted(set(bank_ids) - {b.id for b in banks})
    if unknown:
        raise NotFoundError(f"Bank(s) not found: {unknown}", details={"bank_ids": unknown})
    return banks


async def _ensure_code_free(
    session: AsyncSession, code: str | None, exclude_id: int | None = None
) -> None:
    if not code:
        return
    stmt = select(LoanType.id).where(LoanType.code == code)
    if exclude_id is not None:
        stmt = stmt.where(LoanType.id != exclude_id)
    if (await session.execute(stmt)).scalar() is not None:
        raise ConflictError(f"Loan type code '{code}' already exists", details={"field": "code"})


async def get_loan_type(session: AsyncSession, loan_type_id: int) -> LoanType:
    result = await session.execute(
        select(LoanType)
        .options(selectinload(LoanType.banks))
        .where(LoanType.id == loan_type_id)
        .execution_options(populate_existing=True)
    )
    loan_type = result.scalar_one_or_none()
    if loan_type is None:
        raise NotFoundError("Loan type not found")
    return loan_type


async def list_loan_types(
    session: AsyncSession, *, bank_id: int | None = None
) -> list[LoanType]:
    stmt = select(LoanType).options(selectinload(LoanType.banks)).order_by(LoanType.name)
    if bank_id is not None:
        stmt = stmt.where(LoanType.banks.any(Bank.id == bank_id))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_loan_type(
    session: AsyncSession, user: UserContext, payload: LoanTypeCreate
) -> LoanType:
    _ensure_valid_schema(payload.schema_)
    await _ensure_code_free(session, payload.code)

    loan_type = LoanType(
        **payload.model_dump(exclude={"bank_ids", "schema_"}),
        schema=payload.schema_,
        banks=await _load_banks(session, payload.bank_ids),
    )
    session.add(loan_type)
    await session.flush()
    await record_audit_event(
        session,
        user,
        event_type="LOAN_TYPE_CREATED",
        entity_type=AuditEntityType.LOAN_TYPE,
        entity_id=loan_type.id,
        details=loan_type.name,
        event_data={"code": loan_type.code, "required_documents": loan_type.required_documents},
    )
    await _commit_or_conflict(session, "Loan type conflicts with existing data")
    logger.info("Loan type %s (%s) created by %s", loan_type.id, loan_type.code, user.user_id)
    return await get_loan_type(session, loan_type.id)


async def update_loan_type(
    session: AsyncSession, user: UserContext, loan_type_id: int, payload: LoanTypeUpdate
) -> LoanType:
    loan_type = await get_loan_type(session, loan_type_id)
    changes = payload.model_dump(exclude_unset=True)

    if "schema_" in changes:
        _ensure_valid_schema(changes["schema_"])
        loan_type.schema = changes.pop("schema_")
    if "code" in changes:
        await _ensure_code_free(session, changes["code"], exclude_id=loan_type.id)
    if "bank_ids" in changes:
        loan_type.banks = await _load_banks(session, changes.pop("bank_ids") or [])
    if changes.get("required_documents") is None:
        changes.pop("required_documents", None)

    for field, value in changes.items():
        setattr(loan_type, field, value)

    await record_audit_event(
        session,
        user,
        event_type="LOAN_TYPE_UPDATED",
        entity_type=AuditEntityType.LOAN_TYPE,
        entity_id=loan_type.id,
        details=loan_type.name,
        event_data={"fields": sorted(payload.model_dump(exclude_unset=True))},
    )
    await _commit_or_conflict(session, "Loan type conflicts with existing data")
    return await get_loan_type(session, loan_type.id)


async def delete_loan_type(session: AsyncSession, user: UserContext, loan_type_id: int) -> None:
    loan_type = await get_loan_type(session, loan_type_id)
    in_use = (
        await session.execute(select(func.count(Loan.id)).where(Loan.loan_type_id == loan_type.id))
    ).scalar()
    if in_use:
        raise ConflictError(
            "Loan type is referenced by existing loans", details={"loan_count": in_use}
        )

    await session.delete(loan_type)
    await record_audit_event(
        session,
        user,
        event_type="LOAN_TYPE_DELETED",
        entity_type=AuditEntityType.LOAN_TYPE,
        entity_id=loan_type_id,
        details=loan_type.name,
    )
    await _commit_or_conflict(session, "Loan type is still referenced")


# ---------------------------------------------------------------------------
# Banks
# ---------------------------------------------------------------------------

_BANK_OPTIONS = (selectinload(Bank.loan_types), selectinload(Bank.bankers))


async def _load_loan_types(session: AsyncSession, loan_type_ids: list[int]) -> list[LoanType]:
    if not loan_type_ids:
        return []
    result = await session.execute(select(LoanType).where(LoanType.id.in_(loan_type_ids)))
    loan_types = list(result.scalars().all())
    unknown = sorted(set(loan_type_ids) - {lt.id for lt in loan_types})
    if unknown:
        raise NotFoundError(
            f"Loan type(s) not found: {unknown}", details={"loan_type_ids": unknown}
        )
    return loan_types


async def _ensure_bank_name_free(
    session: AsyncSession, name: str, exclude_id: int | None = None
) -> None:
    stmt = select(Bank.id).where(func.lower(Bank.name) == name.lower())
    if exclude_id is not None:
        stmt = stmt.where(Bank.id != exclude_id)
    if (await session.execute(stmt)).scalar() is not None:
        raise ConflictError(f"Bank '{name}' already exists", details={"field": "name"})


async def get_bank(session: AsyncSession, bank_id: int) -> Bank:
    result = await session.execute(
        select(Bank)
        .options(*_BANK_OPTIONS)
        .where(Bank.id == bank_id)
        .execution_options(populate_existing=True)
    )
    bank = result.scalar_one_or_none()
    if bank is None:
        raise NotFoundError("Bank not found")
    return bank


async def list_banks(session: AsyncSession, *, loan_type_id: int | None = None) -> list[Bank]:
    stmt = select(Bank).options(*_BANK_OPTIONS).order_by(Bank.name)
    if loan_type_id is not None:
        stmt = stmt.where(Bank.loan_types.any(LoanType.id == loan_type_id))
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def create_bank(session: AsyncSession, user: UserContext, payload: BankCreate) -> Bank:
    await _ensure_bank_name_free(session, payload.name)
    loan_types = await _load_loan_types(session, payload.loan_type_ids)
    bank = Bank(name=payload.name, loan_types=loan_types)
    session.add(bank)
    await session.flush()
    await record_audit_event(
        session,
        user,
        event_type="BANK_CREATED",
        entity_type=AuditEntityType.BANK,
        entity_id=bank.id,
        details=bank.name,
        event_data={"loan_type_ids": sorted(payload.loan_type_ids)},
    )
    await _commit_or_conflict(session, "Bank conflicts with existing data")
    return await get_bank(session, bank.id)


async def update_bank(
    session: AsyncSession, user: UserContext, bank_id: int, payload: BankUpdate
) -> Bank:
    bank = await get_bank(session, bank_id)
    if payload.name is not None:
        await _ensure_bank_name_free(session, payload.name, exclude_id=bank.id)
        bank.name = payload.name
    if payload.loan_type_ids is not None:
        bank.loan_types = await _load_loan_types(session, payload.loan_type_ids)

    await record_audit_event(
        session,
        user,
        event_type="BANK_UPDATED",
        entity_type=AuditEntityType.BANK,
        entity_id=bank.id,
        details=bank.name,
        event_data={"fields": sorted(payload.model_dump(exclude_unset=True))},
    )
    await _commit_or_conflict(session, "Bank conflicts with existing data")
    return await get_bank(session, bank.id)


async def delete_bank(session: AsyncSession, user: UserContext, bank_id: int) -> None:
    bank = await get_bank(session, bank_id)
    bankers = (
        await session.execute(
            select(func.count(BankerProfile.id)).where(BankerProfile.bank_id == bank.id)
        )
    ).scalar()
    if bankers:
        raise ConflictError("Bank still has bankers attached", details={"banker_count": bankers})

    await session.delete(bank)
    await record_audit_event(
        session,
        user,
        event_type="BANK_DELETED",
        entity_type=AuditEntityType.BANK,
        entity_id=bank_id,
        details=bank.name,
    )
    await _commit_or_conflict(session, "Bank is still referenced")
