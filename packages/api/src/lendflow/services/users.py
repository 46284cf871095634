# This project was developed with assistance from AI tools.
"""User accounts: role-shaped profiles, admin status changes, email verification."""

import hashlib
import logging
import secrets
from datetime import UTC, datetime, timedelta

from lendflow_db import BankerProfile, CustomerProfile, MerchantProfile, User
from lendflow_db.enums import AuditEntityType, UserRole, UserStatus
from pydantic import ValidationError
from sqlalchemy import func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from ..core.config import settings
from ..core.errors import ConflictError, ForbiddenError, NotFoundError, ValidationFailedError
from ..schemas.auth import UserContext
from ..schemas.profile import (
    AccountUpdate,
    BankerProfileUpdate,
    BankerProfileView,
    CustomerProfileUpdate,
    CustomerProfileView,
    MerchantProfileUpdate,
    MerchantProfileView,
    RoleProfile,
    UserResponse,
)
from . import policy
from .audit import record_audit_event
from .notification import NotificationDispatcher

logger = logging.getLogger(__name__)

_PROFILE_OPTIONS = (
    selectinload(User.customer_profile),
    selectinload(User.merchant_profile),
    selectinload(User.banker_profile),
)

_BLOCKED_STATUSES = frozenset({UserStatus.SUSPENDED, UserStatus.REJECTED})

_UPDATE_MODELS: dict[UserRole, type[AccountUpdate]] = {
    UserRole.CUSTOMER: CustomerProfileUpdate,
    UserRole.MERCHANT: MerchantProfileUpdate,
    UserRole.BANKER: BankerProfileUpdate,
    UserRole.ADMIN: AccountUpdate,
}
_ACCOUNT_FIELDS = frozenset(AccountUpdate.model_fields)
_NOT_NULL_FIELDS = frozenset({"name", "business_name"})


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


def issue_email_verification(user: User) -> str:
    """Attach a fresh verification token to ``user`` and return the raw token.

    Only the SHA-256 hash is stored.
    """
    token = secrets.token_urlsafe(32)
    user.email_verification_token_hash = hash_token(token)
    user.email_verification_expires_at = datetime.now(UTC) + timedelta(
        hours=settings.EMAIL_VERIFICATION_TTL_HOURS
    )
    return token


def profile_view(user: User) -> RoleProfile | None:
    """Project the role-specific profile row onto its tagged view."""
    match user.role:
        case UserRole.CUSTOMER:
            p = user.customer_profile
            if p is None:
                return None
            return CustomerProfileView(
                address=p.address, pincode=p.pincode, merchant_profile_id=p.merchant_id
            )
        case UserRole.MERCHANT:
            p = user.merchant_profile
            if p is None:
                return None
            return MerchantProfileView(
                business_name=p.business_name,
                gst_number=p.gst_number,
                address=p.address,
                pincode=p.pincode,
            )
        case UserRole.BANKER:
            p = user.banker_profile
            if p is None:
                return None
            return BankerProfileView(
                bank_id=p.bank_id,
                branch=p.branch,
                pincode=p.pincode,
                employee_id=p.employee_id,
                is_active=p.is_active,
            )
        case UserRole.ADMIN:
            return None


def to_user_response(user: User) -> UserResponse:
    return UserResponse(
        id=user.id,
        role=user.role,
        name=user.name,
        email=user.email,
        phone=user.phone,
        status=user.status,
        is_email_verified=user.is_email_verified,
        created_at=user.created_at,
        profile=profile_view(user),
    )


async def get_user(session: AsyncSession, user_id: str) -> User | None:
    """Return the user with every profile eagerly loaded."""
    result = await session.execute(
        select(User).options(*_PROFILE_OPTIONS).where(User.id == user_id)
    )
    return result.scalar_one_or_none()


def is_blocked(account: User) -> bool:
    """True when an admin suspended or rejected the account."""
    return account.status in _BLOCKED_STATUSES


def _role_profile(account: User):
    match account.role:
        case UserRole.CUSTOMER:
            if account.customer_profile is None:
                account.customer_profile = CustomerProfile()
            return account.customer_profile
        case UserRole.MERCHANT:
            if account.merchant_profile is None:
                account.merchant_profile = MerchantProfile(business_name=account.name)
            return account.merchant_profile
        case UserRole.BANKER:
            if account.banker_profile is None:
                account.banker_profile = BankerProfile()
            return account.banker_profile
        case UserRole.ADMIN:
            return None


async def provision_account(session: AsyncSession, user: UserContext) -> User:
    """Return the local account for an authenticated identity, creating it on first sight.

    A new row takes role, email and name from the token claims, starts ACTIVE
    with the email treated as verified by the identity provider, and gets an
    empty profile for its role. An email already held by another local account
    is a conflict; linking the two is an admin task.
    """
    account = await get_user(session, user.user_id)
    if account is not None:
        return account
    if not user.email:
        raise ForbiddenError("Identity carries no email address")
    if await get_user_by_email(session, user.email) is not None:
        logger.warning("Identity %s claims an email held by another account", user.user_id)
        raise ConflictError("Email is already registered to another account")

    account = User(
        id=user.user_id,
        role=user.role,
        name=user.name or user.email,
        email=user.email,
        status=UserStatus.ACTIVE,
        is_email_verified=True,
    )
    _role_profile(account)
    session.add(account)
    try:
        await session.flush()
    except IntegrityError:
        # A concurrent first request created the row.
        await session.rollback()
        account = await get_user(session, user.user_id)
        if account is None:
            raise ConflictError("Email is already registered to another account") from None
        return account

    await record_audit_event(
        session,
        user,
        event_type="USER_PROVISIONED",
        entity_type=AuditEntityType.USER,
        entity_id=user.user_id,
        details=f"Local {user.role.value} account created from identity provider claims",
    )
    await session.commit()
    logger.info("Provisioned local %s account %s", user.role.value, user.user_id)
    return account


def parse_profile_update(role: UserRole, changes: dict) -> dict:
    """Validate a self-service edit against the caller's role and return the set fields."""
    try:
        update = _UPDATE_MODELS[role].model_validate(changes)
    except ValidationError as exc:
        raise ValidationFailedError(
            "Invalid profile update",
            [
                {"field": ".".join(str(p) for p in err["loc"]) or "body", "message": err["msg"]}
                for err in exc.errors()
            ],
        ) from exc

    fields = update.model_dump(exclude_unset=True)
    if not fields:
        raise ValidationFailedError(
            "No fields to update", [{"field": "body", "message": "at least one field required"}]
        )
    cleared = sorted(k for k in _NOT_NULL_FIELDS.intersection(fields) if fields[k] is None)
    if cleared:
        raise ValidationFailedError(
            "Invalid profile update", [{"field": k, "message": "may not be null"} for k in cleared]
        )
    return fields


async def update_profile(
    session: AsyncSession,
    user: UserContext,
    changes: dict,
    dispatcher: NotificationDispatcher,
) -> User:
    """Apply the caller's own account and role-profile edits in one transaction."""
    fields = parse_profile_update(user.role, changes)
    account = await provision_account(session, user)

    profile = _role_profile(account)
    for key, value in fields.items():
        setattr(account if key in _ACCOUNT_FIELDS else profile, key, value)

    await record_audit_event(
        session,
        user,
        event_type="PROFILE_UPDATED",
        entity_type=AuditEntityType.USER,
        entity_id=account.id,
        details="Updated " + ", ".join(sorted(fields)),
        event_data={"fields": sorted(fields)},
    )
    await session.commit()
    logger.info("User %s updated profile fields %s", account.id, sorted(fields))

    dispatcher.notify([account.id], "PROFILE_UPDATE", "Your profile details have been updated.")
    return account


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(func.lower(User.email) == email.lower()))
    return result.scalar_one_or_none()


async def is_linked_customer(session: AsyncSession, merchant_user_id: str, customer: User) -> bool:
    """True when ``customer`` was onboarded by the merchant owning ``merchant_user_id``."""
    if customer.role != UserRole.CUSTOMER:
        return False
    result = await session.execute(
        select(CustomerProfile.id)
        .join(MerchantProfile, MerchantProfile.id == CustomerProfile.merchant_id)
        .where(
            CustomerProfile.user_id == customer.id,
            MerchantProfile.user_id == merchant_user_id,
        )
    )
    return result.scalar_one_or_none() is not None


async def list_users(
    session: AsyncSession,
    *,
    offset: int = 0,
    limit: int = 20,
    role: UserRole | None = None,
    status: UserStatus | None = None,
    search: str | None = None,
) -> tuple[list[User], int]:
    filters = []
    if role is not None:
        filters.append(User.role == role)
    if status is not None:
        filters.append(User.status == status)
    if search:
        pattern = f"%{search.lower()}%"
        filters.append(
            or_(func.lower(User.name).like(pattern), func.lower(User.email).like(pattern))
        )

    total = (await session.execute(select(func.count(User.id)).where(*filters))).scalar() or 0
    stmt = (
        select(User)
        .options(*_PROFILE_OPTIONS)
        .where(*filters)
        .order_by(User.created_at.desc(), User.id)
        .offset(offset)
        .limit(limit)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all()), total


async def update_user_status(
    session: AsyncSession,
    actor: UserContext,
    user_id: str,
    status: UserStatus,
    reason: str | None = None,
) -> User:
    """Change an account's status. Admin only, never on the admin's own account."""
    policy.ensure_can_change_user_status(actor, user_id)

    user = await get_user(session, user_id)
    if user is None:
        raise NotFoundError("User not found")

    previous = user.status
    user.status = status
    await record_audit_event(
        session,
        actor,
        event_type="USER_STATUS_CHANGED",
        entity_type=AuditEntityType.USER,
        entity_id=user.id,
        details=f"{previous.value} -> {status.value}" + (f": {reason}" if reason else ""),
        event_data={"previous": previous.value, "status": status.value, "reason": reason},
    )
    await session.commit()
    logger.info("User %s status changed %s -> %s by %s", user.id, previous, status, actor.user_id)
    return user


async def verify_email(session: AsyncSession, token: str) -> User:
    """Consume an email verification token and activate a pending account."""
    result = await session.execute(
        select(User)
        .options(*_PROFILE_OPTIONS)
        .where(User.email_verification_token_hash == hash_token(token))
    )
    user = result.scalar_one_or_none()
    if user is None:
        raise NotFoundError("Verification token not found")

    expires_at = user.email_verification_expires_at
    if expires_at is not None and expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=UTC)
    if expires_at is None or expires_at < datetime.now(UTC):
        raise ValidationFailedError(
            "Verification token has expired",
            [{"field": "token", "message": "expired"}],
        )

    user.is_email_verified = True
    user.email_verification_token_hash = None
    user.email_verification_expires_at = None
    if user.status == UserStatus.PENDING:
        user.status = UserStatus.ACTIVE
    await session.commit()
    return user
