# This project was developed with assistance from AI tools.
"""Functional tests: admin persona journey.

Admin manages accounts and reference data and can inspect the audit trail
and its hash chain. Every persona reads and edits its own profile.
"""

import pytest
from lendflow_db.enums import UserRole

from lendflow.core.auth import build_data_scope
from lendflow.schemas.auth import UserContext
from tests.functional.personas import MERCHANT_USER_ID, admin, banker, customer, merchant

pytestmark = pytest.mark.functional


class TestAccounts:
    async def test_list_users_with_filters(self, client_factory):
        client = client_factory(admin())

        resp = await client.get("/api/admin/users", params={"role": "banker", "limit": 1})

        assert resp.status_code == 200
        body = resp.json()
        assert body["pagination"]["total"] == 2
        assert body["pagination"]["has_more"] is True
        assert body["data"][0]["profile"]["kind"] == "banker"

    async def test_suspend_then_audit(self, client_factory):
        client = client_factory(admin())

        resp = await client.patch(
            f"/api/admin/users/{MERCHANT_USER_ID}/status",
            json={"status": "suspended", "reason": "Chargeback spike"},
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "suspended"

        audit = await client.get(
            "/api/admin/audit", params={"entity_type": "USER", "entity_id": MERCHANT_USER_ID}
        )
        assert audit.json()["count"] == 1
        assert audit.json()["events"][0]["event_type"] == "USER_STATUS_CHANGED"
        assert audit.json()["events"][0]["user_role"] == "admin"

    async def test_suspended_account_refused_on_guarded_routes(self, client_factory):
        await client_factory(admin()).patch(
            f"/api/admin/users/{MERCHANT_USER_ID}/status", json={"status": "suspended"}
        )
        client = client_factory(merchant())

        listing = await client.get("/api/loans/")
        assert listing.status_code == 403
        assert listing.json()["detail"] == "Account is not active"

        me = await client.get("/api/users/me")
        assert me.status_code == 200
        assert me.json()["status"] == "suspended"

    async def test_cannot_suspend_self(self, client_factory):
        resp = await client_factory(admin()).patch(
            "/api/admin/users/admin-user/status", json={"status": "suspended"}
        )
        assert resp.status_code == 403


class TestReferenceData:
    async def test_loan_type_lifecycle(self, client_factory, world):
        client = client_factory(admin())

        created = await client.post(
            "/api/admin/loan-types",
            json={
                "name": "Vehicle Loan",
                "code": "VEHICLE",
                "schema": {
                    "type": "object",
                    "properties": {"registration": {"type": "string"}},
                    "required": ["registration"],
                },
                "bank_ids": [world.bank_id],
            },
        )
        assert created.status_code == 201
        loan_type = created.json()
        assert loan_type["schema"]["required"] == ["registration"]
        assert loan_type["bank_ids"] == [world.bank_id]

        patched = await client.patch(
            f"/api/admin/loan-types/{loan_type['id']}",
            json={"description": "Two and four wheelers"},
        )
        assert patched.json()["description"] == "Two and four wheelers"
        assert patched.json()["code"] == "VEHICLE"

        catalog = await client_factory(merchant()).get("/api/loan-types/")
        assert "VEHICLE" in [lt["code"] for lt in catalog.json()]

        deleted = await client.delete(f"/api/admin/loan-types/{loan_type['id']}")
        assert deleted.status_code == 204
        missing = await client.get(f"/api/admin/loan-types/{loan_type['id']}")
        assert missing.status_code == 404

    async def test_invalid_schema_rejected(self, client_factory):
        resp = await client_factory(admin()).post(
            "/api/admin/loan-types", json={"name": "Broken", "schema": {"type": 12}}
        )
        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_FAILED"

    async def test_duplicate_code_conflicts(self, client_factory):
        resp = await client_factory(admin()).post(
            "/api/admin/loan-types", json={"name": "Copy", "code": "PERSONAL"}
        )
        assert resp.status_code == 409
        assert resp.json()["code"] == "CONFLICT"

    async def test_bank_lifecycle(self, client_factory, world):
        client = client_factory(admin())

        created = await client.post(
            "/api/admin/banks",
            json={"name": "Malabar Gramin Bank", "loan_type_ids": [world.personal_loan_type_id]},
        )
        assert created.status_code == 201
        bank_id = created.json()["id"]

        renamed = await client.patch(
            f"/api/admin/banks/{bank_id}", json={"name": "Malabar Rural Bank"}
        )
        assert renamed.json()["name"] == "Malabar Rural Bank"
        assert renamed.json()["loan_type_ids"] == [world.personal_loan_type_id]

        listed = await client.get(
            "/api/admin/banks", params={"loan_type_id": world.personal_loan_type_id}
        )
        assert {b["id"] for b in listed.json()} == {world.bank_id, bank_id}

        assert (await client.delete(f"/api/admin/banks/{bank_id}")).status_code == 204
        assert (await client.delete(f"/api/admin/banks/{world.bank_id}")).status_code == 409


class TestAuditChain:
    async def test_chain_intact_after_activity(self, client_factory, world):
        client = client_factory(admin())
        await client.post("/api/admin/banks", json={"name": "Chain Bank"})
        await client.patch(
            f"/api/admin/loan-types/{world.business_loan_type_id}", json={"amount_min": "10000"}
        )

        resp = await client.get("/api/admin/audit/verify")

        assert resp.status_code == 200
        assert resp.json() == {"status": "OK", "events_checked": 2, "first_break_id": None}


class TestSelfService:
    async def test_me_returns_profile(self, client_factory, world):
        resp = await client_factory(customer()).get("/api/users/me")

        assert resp.status_code == 200
        body = resp.json()
        assert body["role"] == "customer"
        assert body["profile"]["merchant_profile_id"] == world.merchant_profile_id

    async def test_me_edits_role_profile(self, client_factory, dispatcher):
        client = client_factory(merchant())

        resp = await client.put(
            "/api/users/me", json={"address": "22 Commercial Street", "pincode": "560025"}
        )

        assert resp.status_code == 200
        profile = resp.json()["profile"]
        assert profile["kind"] == "merchant"
        assert profile["address"] == "22 Commercial Street"
        assert profile["business_name"] == "Priya Traders"
        assert dispatcher.types_for(MERCHANT_USER_ID) == ["PROFILE_UPDATE"]

        again = await client.get("/api/users/me")
        assert again.json()["profile"]["pincode"] == "560025"

    async def test_me_refuses_fields_of_other_roles(self, client_factory):
        resp = await client_factory(banker()).put("/api/users/me", json={"bank_id": 7})

        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_FAILED"

    async def test_empty_edit_refused(self, client_factory):
        resp = await client_factory(customer()).put("/api/users/me", json={})

        assert resp.status_code == 400
        assert resp.json()["code"] == "VALIDATION_FAILED"

    async def test_new_identity_gets_local_account_on_first_call(self, client_factory):
        newcomer = UserContext(
            user_id="kc-merchant-77",
            role=UserRole.MERCHANT,
            email="gopal@sweets.example",
            name="Gopal Sweets",
            data_scope=build_data_scope(UserRole.MERCHANT, "kc-merchant-77"),
        )
        client = client_factory(newcomer)

        listing = await client.get("/api/loans/")
        assert listing.status_code == 200

        me = await client.get("/api/users/me")
        assert me.status_code == 200
        assert me.json()["status"] == "active"
        assert me.json()["profile"]["business_name"] == "Gopal Sweets"
