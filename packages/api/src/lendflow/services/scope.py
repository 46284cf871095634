# This project was developed with assistance from AI tools.
"""Shared data scope filtering for loan queries.

Centralizes the DataScope -> SQL WHERE logic so that list and single-loan
reads apply the same rules. Bankers see their assigned loans plus the
unassigned pool; when the banker's profile declares a pincode the pool is
narrowed to applicants whose profile shares it.
"""

from lendflow_db import BankerProfile, CustomerProfile, Loan, MerchantProfile
from sqlalchemy import and_, exists, false, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from ..schemas.auth import DataScope


async def banker_pincode(session: AsyncSession, user_id: str) -> str | None:
    result = await session.execute(
        select(BankerProfile.pincode).where(BankerProfile.user_id == user_id)
    )
    return result.scalar_one_or_none()


def _unassigned_pool(pincode: str | None):
    unassigned = Loan.banker_id.is_(None)
    if not pincode:
        return unassigned
    in_catchment = or_(
        exists().where(
            CustomerProfile.user_id == Loan.applicant_id,
            CustomerProfile.pincode == pincode,
        ),
        exists().where(
            MerchantProfile.user_id == Loan.applicant_id,
            MerchantProfile.pincode == pincode,
        ),
    )
    return and_(unassigned, in_catchment)


def apply_loan_scope(stmt, scope: DataScope, *, pincode: str | None = None):
    """Apply data scope filtering to a SQLAlchemy query over Loan.

    Args:
        stmt: A SQLAlchemy select statement whose FROM includes ``loans``.
        scope: The caller's DataScope.
        pincode: The banker's catchment, used only for ``assigned_to`` scopes.

    Returns:
        The filtered statement.
    """
    if scope.full_pipeline:
        return stmt
    if scope.submitted_by:
        return stmt.where(Loan.merchant_id == scope.submitted_by)
    if scope.applicant_id:
        return stmt.where(Loan.applicant_id == scope.applicant_id)
    if scope.assigned_to:
        return stmt.where(or_(Loan.banker_id == scope.assigned_to, _unassigned_pool(pincode)))
    # Unknown role -- nothing visible
    return stmt.where(false())
