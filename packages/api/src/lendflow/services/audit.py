# This project was developed with assistance from AI tools.
"""Audit event service.

Writes append-only audit trail entries with a SHA-256 hash chain for tamper
evidence. On PostgreSQL a transaction-scoped advisory lock serializes hash
computation across concurrent writers.

``record_audit_event`` is the entry point services use: it writes inside a
SAVEPOINT on the caller's transaction so the row commits together with the
business change, while a failed audit insert is logged and rolled back to
the savepoint without failing the operation.
"""

import hashlib
import json
import logging
from datetime import UTC, datetime

from lendflow_db import AuditEvent
from lendflow_db.enums import AuditEntityType
from sqlalchemy import func, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import UserContext

logger = logging.getLogger(__name__)

# Fixed advisory lock key for audit trail serialization.
# Only audit event inserts are serialized; other DB operations are unaffected.
AUDIT_LOCK_KEY = 900_001


def _canonical_timestamp(value: datetime | None) -> str:
    """Render a timestamp identically whether it was read back tz-aware or naive."""
    if value is None:
        return ""
    if value.tzinfo is not None:
        value = value.astimezone(UTC).replace(tzinfo=None)
    return value.isoformat()


def _compute_hash(event: AuditEvent) -> str:
    """Compute SHA-256 hash of an audit event's key fields."""
    payload = "|".join(
        [
            str(event.id),
            _canonical_timestamp(event.timestamp),
            event.event_type,
            f"{event.entity_type}:{event.entity_id}",
            json.dumps(event.event_data, sort_keys=True, default=str),
        ]
    )
    return hashlib.sha256(payload.encode()).hexdigest()


def _is_postgres(session: AsyncSession) -> bool:
    return session.get_bind().dialect.name == "postgresql"


async def write_audit_event(
    session: AsyncSession,
    *,
    event_type: str,
    entity_type: AuditEntityType,
    entity_id: str | int,
    user_id: str | None = None,
    user_role: str | None = None,
    loan_id: int | None = None,
    details: str | None = None,
    event_data: dict | None = None,
) -> AuditEvent:
    """Write a single audit event with hash chain linkage.

    Args:
        session: Database session.
        event_type: Action tag (e.g. 'LOAN_APPROVED', 'KYC_REJECTED').
        entity_type: Kind of entity the action applies to.
        entity_id: Identifier of that entity.
        user_id: Actor who triggered the event.
        user_role: Actor's role at the time of the event.
        loan_id: Related loan, if any.
        details: Free-text summary shown in compliance views.
        event_data: Arbitrary JSON-serializable event payload.

    Returns:
        The created AuditEvent row (with prev_hash set).
    """
    if _is_postgres(session):
        # Released automatically when the transaction commits or rolls back.
        await session.execute(text(f"SELECT pg_advisory_xact_lock({AUDIT_LOCK_KEY})"))

    latest_stmt = select(AuditEvent).order_by(AuditEvent.id.desc()).limit(1)
    result = await session.execute(latest_stmt)
    prev_event = result.scalar_one_or_none()
    prev_hash = _compute_hash(prev_event) if prev_event is not None else "genesis"

    audit = AuditEvent(
        timestamp=datetime.now(UTC),
        event_type=event_type,
        entity_type=entity_type.value,
        entity_id=str(entity_id),
        user_id=user_id,
        user_role=user_role,
        loan_id=loan_id,
        details=details,
        event_data=event_data,
        prev_hash=prev_hash,
    )
    session.add(audit)
    await session.flush()
    return audit


async def record_audit_event(
    session: AsyncSession,
    actor: UserContext | None,
    *,
    event_type: str,
    entity_type: AuditEntityType,
    entity_id: str | int,
    loan_id: int | None = None,
    details: str | None = None,
    event_data: dict | None = None,
) -> AuditEvent | None:
    """Best-effort audit write on the caller's transaction. Returns None on failure."""
    try:
        async with session.begin_nested():
            return await write_audit_event(
                session,
                event_type=event_type,
                entity_type=entity_type,
                entity_id=entity_id,
                user_id=actor.user_id if actor else None,
                user_role=actor.role.value if actor else None,
                loan_id=loan_id,
                details=details,
                event_data=event_data,
            )
    except SQLAlchemyError:
        logger.warning(
            "Audit write failed: event=%s entity=%s:%s",
            event_type,
            entity_type.value,
            entity_id,
            exc_info=True,
        )
        return None


async def verify_audit_chain(session: AsyncSession) -> dict:
    """Verify the integrity of the audit event hash chain.

    Walks all events in ID order, recomputes each expected prev_hash,
    and compares against the stored value.

    Returns:
        {"status": "OK", "events_checked": N} on success, or
        {"status": "TAMPERED", "first_break_id": id, "events_checked": N}
        if a mismatch is found.
    """
    stmt = select(AuditEvent).order_by(AuditEvent.id.asc())
    result = await session.execute(stmt)
    events = list(result.scalars().all())

    if not events:
        return {"status": "OK", "events_checked": 0}

    for i, event in enumerate(events):
        expected = "genesis" if i == 0 else _compute_hash(events[i - 1])
        if event.prev_hash != expected:
            return {
                "status": "TAMPERED",
                "first_break_id": event.id,
                "events_checked": i + 1,
            }

    return {"status": "OK", "events_checked": len(events)}


async def get_audit_chain_length(session: AsyncSession) -> int:
    """Return the total number of audit events."""
    result = await session.execute(select(func.count(AuditEvent.id)))
    return result.scalar_one()


async def get_events_for_entity(
    session: AsyncSession,
    entity_type: AuditEntityType,
    entity_id: str | int,
) -> list[AuditEvent]:
    """Return all audit events for one entity, oldest first."""
    stmt = (
        select(AuditEvent)
        .where(
            AuditEvent.entity_type == entity_type.value,
            AuditEvent.entity_id == str(entity_id),
        )
        .order_by(AuditEvent.id.asc())
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def get_events_for_loan(session: AsyncSession, loan_id: int) -> list[AuditEvent]:
    """Return every audit event referencing a loan, oldest first."""
    stmt = select(AuditEvent).where(AuditEvent.loan_id == loan_id).order_by(AuditEvent.id.asc())
    result = await session.execute(stmt)
    return list(result.scalars().all())
