# This project was developed with assistance from AI tools.
"""Tests for storage-key ownership verification."""

from unittest.mock import AsyncMock

import pytest
from botocore.exceptions import ClientError

from lendflow.services.ownership import DocumentOwnershipVerifier, owner_segment
from lendflow.services.storage import StorageService
from tests.fakes import FakeStorage


@pytest.mark.parametrize(
    ("key", "owner"),
    [
        ("merchant-1/loan-documents/abc-invoice.pdf", "merchant-1"),
        ("user-9/ID_PROOF/4", "user-9"),
        ("no-namespace.pdf", None),
        ("/leading/slash", None),
        ("trailing/", None),
    ],
)
def test_owner_segment(key, owner):
    assert owner_segment(key) == owner


async def test_owned_existing_key_verifies():
    storage = FakeStorage()
    storage.put("merchant-1/loan-documents/a.pdf")
    verifier = DocumentOwnershipVerifier(storage)
    assert await verifier.verify("merchant-1/loan-documents/a.pdf", ["merchant-1"]) is True


async def test_key_under_another_prefix_fails_without_storage_lookup():
    storage = AsyncMock()
    verifier = DocumentOwnershipVerifier(storage)
    assert await verifier.verify("someone-else/loan-documents/a.pdf", ["merchant-1"]) is False
    storage.exists.assert_not_awaited()


async def test_owned_but_missing_object_fails():
    verifier = DocumentOwnershipVerifier(FakeStorage())
    assert await verifier.verify("merchant-1/loan-documents/a.pdf", ["merchant-1"]) is False


async def test_any_expected_owner_is_accepted():
    storage = FakeStorage()
    storage.put("customer-7/loan-documents/a.pdf")
    verifier = DocumentOwnershipVerifier(storage)
    assert await verifier.verify("customer-7/loan-documents/a.pdf", ["merchant-1", "customer-7"])


async def test_none_owner_ids_are_ignored():
    verifier = DocumentOwnershipVerifier(FakeStorage())
    assert await verifier.verify("None/x/y", [None]) is False


async def test_verify_many_returns_failures_in_input_order():
    storage = FakeStorage()
    storage.put("m/loan-documents/ok-1.pdf", "m/loan-documents/ok-2.pdf")
    verifier = DocumentOwnershipVerifier(storage)
    failed = await verifier.verify_many(
        [
            "m/loan-documents/ok-1.pdf",
            "x/loan-documents/spoof.pdf",
            "m/loan-documents/ok-2.pdf",
            "m/loan-documents/missing.pdf",
        ],
        ["m"],
    )
    assert failed == ["x/loan-documents/spoof.pdf", "m/loan-documents/missing.pdf"]


async def test_spoofed_key_logs_warning(caplog):
    verifier = DocumentOwnershipVerifier(FakeStorage())
    with caplog.at_level("WARNING", logger="lendflow.services.ownership"):
        await verifier.verify("victim/ID_PROOF/1", ["attacker"])
    assert "ownership mismatch" in caplog.text


# ---------------------------------------------------------------------------
# StorageService.exists maps a storage 404 to False
# ---------------------------------------------------------------------------


def _storage_with_client(client) -> StorageService:
    service = StorageService.__new__(StorageService)
    service._client = client
    service._bucket = "documents"
    return service


def _client_error(code: str) -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, "HeadObject")


async def test_storage_exists_true_when_head_succeeds():
    client = AsyncMock()
    client.head_object = lambda **kwargs: {"ContentLength": 10}
    assert await _storage_with_client(client).exists("a/b/c") is True


@pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
async def test_storage_exists_false_on_missing(code):
    class _Client:
        def head_object(self, **kwargs):
            raise _client_error(code)

    assert await _storage_with_client(_Client()).exists("a/b/c") is False


async def test_storage_exists_reraises_other_errors():
    class _Client:
        def head_object(self, **kwargs):
            raise _client_error("AccessDenied")

    with pytest.raises(ClientError):
        await _storage_with_client(_Client()).exists("a/b/c")


def test_kyc_object_key_layout():
    assert StorageService.build_kyc_object_key("u-1", "PAN_CARD", 42) == "u-1/PAN_CARD/42"


def test_loan_document_key_strips_path_components():
    key = StorageService.build_loan_document_key("m-1", "../../etc/passwd")
    assert key.startswith("m-1/loan-documents/")
    assert key.endswith("-passwd")
    assert owner_segment(key) == "m-1"
