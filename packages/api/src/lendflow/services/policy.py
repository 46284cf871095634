# This project was developed with assistance from AI tools.
"""Authorization policy for lifecycle and KYC operations.

Route dependencies (``require_roles``) gate on role alone; these checks add
the relationship rules that need the loan or target user in hand. Each
``ensure_*`` raises ForbiddenError and logs the denial.
"""

import logging

from lendflow_db import Loan
from lendflow_db.enums import UserRole

from ..core.errors import ForbiddenError
from ..schemas.auth import UserContext

logger = logging.getLogger(__name__)

_REVIEWER_ROLES = frozenset({UserRole.BANKER, UserRole.ADMIN})


def _deny(user: UserContext, action: str, message: str) -> ForbiddenError:
    logger.warning(
        "Policy denied: user=%s role=%s action=%s",
        user.user_id,
        user.role.value,
        action,
    )
    return ForbiddenError(message)


def ensure_can_apply(user: UserContext) -> None:
    if user.role != UserRole.MERCHANT:
        raise _deny(user, "apply", "Only merchants can submit loan applications")


def ensure_can_assign(user: UserContext) -> None:
    if user.role not in _REVIEWER_ROLES:
        raise _deny(user, "assign", "Only bankers or admins can assign loans")


def ensure_assigned_banker(user: UserContext, loan: Loan, action: str) -> None:
    """Only the banker already assigned to the loan may decide or disburse it."""
    if user.role != UserRole.BANKER or loan.banker_id != user.user_id:
        raise _deny(user, action, "Only the assigned banker can perform this action")


def ensure_can_cancel(user: UserContext, loan: Loan) -> None:
    if user.user_id not in {loan.applicant_id, loan.merchant_id}:
        raise _deny(user, "cancel", "Only the applicant or submitting merchant can cancel")


def ensure_can_review_kyc(user: UserContext) -> None:
    if user.role not in _REVIEWER_ROLES:
        raise _deny(user, "kyc_review", "Only bankers or admins can review KYC documents")


def ensure_can_change_user_status(user: UserContext, target_user_id: str) -> None:
    if user.role != UserRole.ADMIN:
        raise _deny(user, "user_status", "Only admins can change account status")
    if user.user_id == target_user_id:
        raise _deny(user, "user_status", "Admins cannot change their own account status")


def can_act_on_behalf(actor: UserContext, target_role: UserRole, *, linked: bool) -> bool:
    """Decide whether ``actor`` may manage KYC documents of another user.

    ``linked`` is True when the target is a customer onboarded by the actor's
    merchant profile.
    """
    match actor.role:
        case UserRole.BANKER | UserRole.ADMIN:
            return True
        case UserRole.MERCHANT:
            return target_role == UserRole.CUSTOMER and linked
        case UserRole.CUSTOMER:
            return False


def ensure_can_act_on_behalf(actor: UserContext, target_role: UserRole, *, linked: bool) -> None:
    if not can_act_on_behalf(actor, target_role, linked=linked):
        raise _deny(actor, "kyc_on_behalf", "Not allowed to manage this user's KYC documents")
