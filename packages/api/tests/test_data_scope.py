# This project was developed with assistance from AI tools.
"""Data scope construction and the SQL filters derived from it."""

import pytest_asyncio
from lendflow_db import BankerProfile, Loan
from lendflow_db.enums import UserRole
from sqlalchemy import select, update

from lendflow.core.auth import build_data_scope
from lendflow.schemas.auth import DataScope
from lendflow.services.scope import apply_loan_scope, banker_pincode
from tests.functional.personas import (
    BANKER_USER_ID,
    CUSTOMER_USER_ID,
    MERCHANT_USER_ID,
    OTHER_BANKER_USER_ID,
    OTHER_CUSTOMER_USER_ID,
    OTHER_MERCHANT_USER_ID,
)
from tests.seed import add_loan


def test_merchant_scope_is_submitted_by():
    scope = build_data_scope(UserRole.MERCHANT, "m-1")
    assert scope.submitted_by == "m-1"
    assert scope.full_pipeline is False


def test_customer_scope_is_applicant():
    scope = build_data_scope(UserRole.CUSTOMER, "c-1")
    assert scope.applicant_id == "c-1"
    assert scope.submitted_by is None


def test_banker_scope_is_assigned_to():
    scope = build_data_scope(UserRole.BANKER, "b-1")
    assert scope.assigned_to == "b-1"
    assert scope.full_pipeline is False


def test_admin_scope_full_pipeline():
    scope = build_data_scope(UserRole.ADMIN, "a-1")
    assert scope.full_pipeline is True
    assert scope.assigned_to is None


# ---------------------------------------------------------------------------
# apply_loan_scope against seeded loans
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def loans(session, world):
    """Four loans covering assigned, unassigned-local and unassigned-remote cases."""
    lt = world.personal_loan_type_id
    assigned = await add_loan(session, lt, banker_id=BANKER_USER_ID)
    local_pool = await add_loan(session, lt)
    remote_pool = await add_loan(
        session, lt, applicant_id=OTHER_CUSTOMER_USER_ID, merchant_id=OTHER_MERCHANT_USER_ID
    )
    others = await add_loan(session, lt, banker_id=OTHER_BANKER_USER_ID)
    return {
        "assigned": assigned.id,
        "local_pool": local_pool.id,
        "remote_pool": remote_pool.id,
        "others": others.id,
    }


async def _visible(session, scope: DataScope, pincode: str | None = None) -> set[int]:
    stmt = apply_loan_scope(select(Loan.id), scope, pincode=pincode)
    return set((await session.execute(stmt)).scalars().all())


async def test_admin_sees_everything(session, loans):
    assert await _visible(session, DataScope(full_pipeline=True)) == set(loans.values())


async def test_merchant_sees_only_submitted(session, loans):
    visible = await _visible(session, DataScope(submitted_by=MERCHANT_USER_ID))
    assert visible == {loans["assigned"], loans["local_pool"], loans["others"]}


async def test_customer_sees_only_own_applications(session, loans):
    visible = await _visible(session, DataScope(applicant_id=OTHER_CUSTOMER_USER_ID))
    assert visible == {loans["remote_pool"]}


async def test_banker_without_pincode_sees_assigned_and_pool(session, loans):
    visible = await _visible(session, DataScope(assigned_to=BANKER_USER_ID))
    assert visible == {loans["assigned"], loans["local_pool"], loans["remote_pool"]}


async def test_banker_pincode_narrows_pool(session, loans):
    visible = await _visible(session, DataScope(assigned_to=BANKER_USER_ID), pincode="560001")
    assert visible == {loans["assigned"], loans["local_pool"]}


async def test_empty_scope_sees_nothing(session, loans):
    assert await _visible(session, DataScope()) == set()


async def test_banker_pincode_lookup(session, world):
    assert await banker_pincode(session, BANKER_USER_ID) is None
    await session.execute(
        update(BankerProfile)
        .where(BankerProfile.user_id == BANKER_USER_ID)
        .values(pincode="560001")
    )
    await session.commit()
    assert await banker_pincode(session, BANKER_USER_ID) == "560001"
    assert await banker_pincode(session, CUSTOMER_USER_ID) is None
