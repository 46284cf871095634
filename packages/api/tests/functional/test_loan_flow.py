# This project was developed with assistance from AI tools.
"""Functional tests: a loan from application to disbursement over HTTP.

The merchant applies for a linked customer, an admin routes the loan to a
banker, approval is held back until the customer's KYC is verified, and the
banker finally disburses.
"""

import pytest

from tests.functional.personas import (
    BANKER_USER_ID,
    CUSTOMER_USER_ID,
    admin,
    banker,
    customer,
    merchant,
    other_banker,
    other_customer,
)

pytestmark = pytest.mark.functional


async def _upload_invoice(client, storage) -> str:
    resp = await client.post("/api/loans/documents/upload-url", json={"filename": "invoice.pdf"})
    assert resp.status_code == 200
    key = resp.json()["storage_key"]
    storage.put(key)
    return key


async def _apply(client, world, invoice_key: str, **overrides) -> dict:
    body = {
        "applicant": {"kind": "existing", "customer_id": CUSTOMER_USER_ID},
        "loan_type_id": world.personal_loan_type_id,
        "amount": "75000.00",
        "tenor_months": 18,
        "metadata": {"purpose": "shop refit", "monthly_income": 42000},
        "documents": [{"storage_key": invoice_key, "doc_type": "INVOICE"}],
    }
    body.update(overrides)
    return await client.post("/api/loans/", json=body)


async def _verify_customer_kyc(customer_client, banker_client, storage) -> None:
    for doc_type in ("ID_PROOF", "ADDRESS_PROOF", "PAN_CARD"):
        started = await customer_client.post("/api/kyc/upload-url", json={"doc_type": doc_type})
        assert started.status_code == 200
        started = started.json()
        storage.put(started["storage_key"])

        done = await customer_client.post(
            f"/api/kyc/documents/{started['document_id']}/complete",
            json={"content_type": "image/jpeg", "size_bytes": 180_000},
        )
        assert done.status_code == 200
        assert done.json()["status"] == "PENDING"

        reviewed = await banker_client.post(
            f"/api/kyc/review/{started['document_id']}",
            json={"status": "VERIFIED", "notes": "Matches records"},
        )
        assert reviewed.status_code == 200


async def test_full_loan_journey(client_factory, world, storage, dispatcher):
    merchant_client = client_factory(merchant())
    invoice = await _upload_invoice(merchant_client, storage)

    resp = await _apply(merchant_client, world, invoice)
    assert resp.status_code == 201
    loan = resp.json()
    loan_id = loan["id"]
    assert loan["status"] == "SUBMITTED"
    assert loan["kyc_status"] == "PENDING"
    assert loan["kyc_readiness"]["complete"] is False
    assert loan["documents"][0]["storage_key"] == invoice

    admin_client = client_factory(admin())
    resp = await admin_client.post(
        f"/api/loans/{loan_id}/assign", json={"banker_id": BANKER_USER_ID}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "UNDER_REVIEW"

    banker_client = client_factory(banker())
    resp = await banker_client.post(
        f"/api/loans/{loan_id}/approve", json={"interest_rate": "13.25"}
    )
    assert resp.status_code == 400
    problem = resp.json()
    assert problem["code"] == "KYC_INCOMPLETE"
    assert problem["details"]["missing_types"] == ["ID_PROOF", "ADDRESS_PROOF", "PAN_CARD"]
    assert problem["details"]["percent_complete"] == 0

    customer_client = client_factory(customer())
    await _verify_customer_kyc(customer_client, banker_client, storage)

    resp = await customer_client.get(f"/api/loans/{loan_id}")
    assert resp.json()["kyc_status"] == "VERIFIED"
    assert resp.json()["kyc_readiness"]["percent_complete"] == 100

    resp = await banker_client.post(
        f"/api/loans/{loan_id}/approve",
        json={"interest_rate": "13.25", "notes": "Good repayment history"},
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "APPROVED"
    assert resp.json()["interest_rate"] == "13.25"

    resp = await banker_client.post(
        f"/api/loans/{loan_id}/disburse", json={"reference_id": "NEFT-20261018-0042"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "DISBURSED"

    resp = await customer_client.get(f"/api/loans/{loan_id}/audit")
    assert resp.status_code == 200
    assert [e["event_type"] for e in resp.json()["events"]] == [
        "LOAN_APPLIED",
        "BANKER_ASSIGNED",
        "LOAN_APPROVED",
        "LOAN_DISBURSED",
    ]
    assert "LOAN_DISBURSED" in dispatcher.types_for(CUSTOMER_USER_ID)


async def test_apply_with_missing_invoice(client_factory, world):
    client = client_factory(merchant())

    resp = await _apply(client, world, "unused", documents=[])

    assert resp.status_code == 400
    assert resp.json()["code"] == "MISSING_DOCUMENTS"
    assert resp.json()["details"] == {"missing_types": ["INVOICE"]}


async def test_apply_with_foreign_document(client_factory, world, storage):
    foreign_key = "kiran-motors-merchant/loan-documents/abc-invoice.pdf"
    storage.put(foreign_key)
    client = client_factory(merchant())

    resp = await _apply(client, world, foreign_key)

    assert resp.status_code == 400
    assert resp.json()["code"] == "DOCUMENT_VERIFICATION_FAILED"
    assert resp.json()["details"]["documents"] == [foreign_key]


async def test_apply_with_bad_metadata(client_factory, world, storage):
    client = client_factory(merchant())
    invoice = await _upload_invoice(client, storage)

    resp = await _apply(client, world, invoice, metadata={"purpose": "x", "monthly_income": -5})

    assert resp.status_code == 400
    problem = resp.json()
    assert problem["code"] == "VALIDATION_FAILED"
    assert {e["field"] for e in problem["details"]["errors"]} == {"purpose", "monthly_income"}


async def test_apply_for_new_customer(client_factory, world, storage, dispatcher):
    client = client_factory(merchant())
    invoice = await _upload_invoice(client, storage)

    resp = await _apply(
        client,
        world,
        invoice,
        applicant={
            "kind": "new",
            "name": "Lakshmi Menon",
            "email": "lakshmi@example.com",
            "phone": "+919812345678",
            "pincode": "560001",
        },
    )

    assert resp.status_code == 201
    assert resp.json()["applicant_id"] != CUSTOMER_USER_ID
    assert dispatcher.emails[0][0] == "lakshmi@example.com"


async def test_approve_of_submitted_loan_conflicts(client_factory, world, storage):
    merchant_client = client_factory(merchant())
    invoice = await _upload_invoice(merchant_client, storage)
    loan_id = (await _apply(merchant_client, world, invoice)).json()["id"]

    resp = await client_factory(banker()).post(
        f"/api/loans/{loan_id}/approve", json={"interest_rate": "12"}
    )

    assert resp.status_code == 409
    assert resp.json()["code"] == "INVALID_STATE_TRANSITION"
    assert resp.json()["title"] == "Conflict"


async def test_only_assigned_banker_decides(client_factory, world, storage):
    merchant_client = client_factory(merchant())
    invoice = await _upload_invoice(merchant_client, storage)
    loan_id = (await _apply(merchant_client, world, invoice)).json()["id"]
    await client_factory(banker()).post(
        f"/api/loans/{loan_id}/assign", json={"banker_id": BANKER_USER_ID}
    )

    resp = await client_factory(other_banker()).post(
        f"/api/loans/{loan_id}/reject", json={"notes": "Not my call"}
    )

    assert resp.status_code == 403
    assert resp.json()["code"] == "FORBIDDEN"


async def test_customer_cancels_own_loan(client_factory, world, storage):
    merchant_client = client_factory(merchant())
    invoice = await _upload_invoice(merchant_client, storage)
    loan_id = (await _apply(merchant_client, world, invoice)).json()["id"]

    resp = await client_factory(customer()).post(
        f"/api/loans/{loan_id}/cancel", json={"reason": "Found a better offer"}
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "CANCELLED"

    again = await client_factory(customer()).post(f"/api/loans/{loan_id}/cancel", json={})
    assert again.status_code == 409


async def test_loan_visibility_by_role(client_factory, world, storage):
    merchant_client = client_factory(merchant())
    invoice = await _upload_invoice(merchant_client, storage)
    loan_id = (await _apply(merchant_client, world, invoice)).json()["id"]

    listing = await client_factory(customer()).get("/api/loans/")
    assert [loan["id"] for loan in listing.json()["data"]] == [loan_id]
    assert listing.json()["pagination"]["total"] == 1

    assert (await client_factory(other_customer()).get("/api/loans/")).json()["data"] == []
    resp = await client_factory(other_customer()).get(f"/api/loans/{loan_id}")
    assert resp.status_code == 403

    assert (await client_factory(admin()).get("/api/loans/9999")).status_code == 404
