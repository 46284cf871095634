# This project was developed with assistance from AI tools.
"""Functional tests: notification inbox and health check."""

import pytest
import pytest_asyncio
from lendflow_db import Notification
from lendflow_db.enums import NotificationStatus

from lendflow import __version__
from tests.functional.personas import BANKER_USER_ID, CUSTOMER_USER_ID, banker, customer

pytestmark = pytest.mark.functional


@pytest_asyncio.fixture
async def inbox(session, world):
    rows = [
        Notification(user_id=CUSTOMER_USER_ID, type="LOAN_APPROVED", message="Approved"),
        Notification(user_id=CUSTOMER_USER_ID, type="KYC_UPDATE", message="PAN verified"),
        Notification(
            user_id=CUSTOMER_USER_ID,
            type="LOAN_APPLIED",
            message="Submitted",
            status=NotificationStatus.READ,
        ),
        Notification(user_id=BANKER_USER_ID, type="LOAN_ASSIGNED", message="New loan"),
    ]
    session.add_all(rows)
    await session.commit()
    return rows


async def test_inbox_lists_own_notifications(client_factory, inbox):
    resp = await client_factory(customer()).get("/api/notifications/")

    assert resp.status_code == 200
    body = resp.json()
    assert body["pagination"]["total"] == 3
    assert body["unread_count"] == 2
    assert {n["user_id"] for n in body["data"]} == {CUSTOMER_USER_ID}


async def test_inbox_status_filter(client_factory, inbox):
    resp = await client_factory(customer()).get("/api/notifications/", params={"status": "read"})
    assert [n["type"] for n in resp.json()["data"]] == ["LOAN_APPLIED"]


async def test_mark_one_read(client_factory, inbox):
    client = client_factory(customer())

    resp = await client.post(f"/api/notifications/{inbox[0].id}/read")

    assert resp.status_code == 200
    assert resp.json()["status"] == "read"
    assert (await client.get("/api/notifications/")).json()["unread_count"] == 1


async def test_cannot_mark_someone_elses(client_factory, inbox):
    resp = await client_factory(customer()).post(f"/api/notifications/{inbox[3].id}/read")
    assert resp.status_code == 403


async def test_mark_all_read(client_factory, inbox):
    client = client_factory(customer())

    resp = await client.post("/api/notifications/read-all")

    assert resp.json() == {"updated": 2}
    assert (await client.get("/api/notifications/")).json()["unread_count"] == 0
    banker_inbox = await client_factory(banker()).get("/api/notifications/")
    assert banker_inbox.json()["unread_count"] == 1


async def test_health_reports_api_and_database(client_factory):
    resp = await client_factory(None).get("/health/")

    assert resp.status_code == 200
    items = {item["name"]: item for item in resp.json()}
    assert items["API"]["version"] == __version__
    assert items["Database"]["status"] == "healthy"
    assert items["Database"]["message"] == "SQLite reachable"
