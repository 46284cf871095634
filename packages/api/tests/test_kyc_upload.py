# This project was developed with assistance from AI tools.
"""KYC upload handshake: presigned POST issuance and completion checks."""

import pytest
from lendflow_db import KYCDocument
from lendflow_db.enums import KYCDocumentStatus, KYCDocumentType

from lendflow.core.errors import (
    ForbiddenError,
    InvalidStateTransitionError,
    NotFoundError,
    PayloadTooLargeError,
    UnsupportedMediaTypeError,
    ValidationFailedError,
)
from lendflow.schemas.kyc import CompleteUploadRequest
from lendflow.services import kyc as kyc_service
from tests.functional.personas import (
    CUSTOMER_USER_ID,
    MERCHANT_USER_ID,
    OTHER_CUSTOMER_USER_ID,
    OTHER_MERCHANT_USER_ID,
    banker,
    customer,
    merchant,
    other_customer,
)

PDF = "application/pdf"


def _complete(size: int = 2048, content_type: str = PDF, key: str | None = None):
    return CompleteUploadRequest(storage_key=key, content_type=content_type, size_bytes=size)


async def _start(session, storage, actor, doc_type=KYCDocumentType.ID_PROOF, **kwargs):
    return await kyc_service.generate_upload_url(session, actor, doc_type, storage, **kwargs)


# ---------------------------------------------------------------------------
# generate_upload_url
# ---------------------------------------------------------------------------


async def test_upload_url_creates_uploading_row(session, world, storage):
    result = await _start(session, storage, customer())

    doc = await session.get(KYCDocument, result.document_id)
    assert doc.status == KYCDocumentStatus.UPLOADING
    assert doc.user_id == CUSTOMER_USER_ID
    assert doc.uploaded_by == CUSTOMER_USER_ID
    assert result.storage_key == f"{CUSTOMER_USER_ID}/ID_PROOF/{result.document_id}"
    assert doc.storage_key == result.storage_key
    assert storage.signed == [(result.storage_key, 5 * 1024 * 1024)]
    assert "complete-upload" in result.instructions


async def test_merchant_uploads_for_linked_customer(session, world, storage):
    result = await _start(session, storage, merchant(), target_user_id=CUSTOMER_USER_ID)

    doc = await session.get(KYCDocument, result.document_id)
    assert doc.user_id == CUSTOMER_USER_ID
    assert doc.uploaded_by == MERCHANT_USER_ID
    assert result.storage_key.startswith(f"{CUSTOMER_USER_ID}/")


async def test_merchant_cannot_upload_for_unlinked_customer(session, world, storage):
    with pytest.raises(ForbiddenError):
        await _start(session, storage, merchant(), target_user_id=OTHER_CUSTOMER_USER_ID)
    assert storage.signed == []


async def test_merchant_cannot_upload_for_another_merchant(session, world, storage):
    with pytest.raises(NotFoundError):
        await _start(session, storage, merchant(), target_user_id=OTHER_MERCHANT_USER_ID)


async def test_banker_uploads_for_anyone(session, world, storage):
    result = await _start(
        session,
        storage,
        banker(),
        KYCDocumentType.BANK_STATEMENT,
        target_user_id=OTHER_MERCHANT_USER_ID,
    )
    assert result.storage_key.startswith(f"{OTHER_MERCHANT_USER_ID}/BANK_STATEMENT/")


async def test_customer_cannot_upload_for_other_customer(session, world, storage):
    with pytest.raises(ForbiddenError):
        await _start(session, storage, customer(), target_user_id=OTHER_CUSTOMER_USER_ID)


async def test_upload_for_unknown_user(session, world, storage):
    with pytest.raises(NotFoundError):
        await _start(session, storage, banker(), target_user_id="no-such-user")


async def test_target_equal_to_actor_is_self_upload(session, world, storage):
    result = await _start(session, storage, customer(), target_user_id=CUSTOMER_USER_ID)
    assert result.storage_key.startswith(f"{CUSTOMER_USER_ID}/")


# ---------------------------------------------------------------------------
# complete_upload
# ---------------------------------------------------------------------------


async def test_complete_moves_to_pending(session, world, storage):
    started = await _start(session, storage, customer())
    storage.put(started.storage_key)

    doc = await kyc_service.complete_upload(
        session, customer(), started.document_id, _complete(), storage
    )

    assert doc.status == KYCDocumentStatus.PENDING
    assert doc.content_type == PDF
    assert doc.size_bytes == 2048


async def test_complete_ignores_client_supplied_key(session, world, storage, caplog):
    """A key pointing at someone else's object is logged and replaced by the server's own."""
    started = await _start(session, storage, customer())
    victim_key = f"{OTHER_CUSTOMER_USER_ID}/ID_PROOF/1"
    storage.put(started.storage_key, victim_key)

    with caplog.at_level("WARNING", logger="lendflow.services.kyc"):
        doc = await kyc_service.complete_upload(
            session, customer(), started.document_id, _complete(key=victim_key), storage
        )

    assert doc.storage_key == started.storage_key
    assert "storage key mismatch" in caplog.text


async def test_complete_requires_object_at_server_key(session, world, storage):
    """The object must exist at the rebuilt key, not wherever the client claims."""
    started = await _start(session, storage, customer())
    spoofed = f"{CUSTOMER_USER_ID}/ID_PROOF/elsewhere"
    storage.put(spoofed)

    with pytest.raises(ValidationFailedError) as exc_info:
        await kyc_service.complete_upload(
            session, customer(), started.document_id, _complete(key=spoofed), storage
        )
    assert exc_info.value.errors[0]["field"] == "storage_key"


async def test_complete_rejects_oversized_file(session, world, storage):
    started = await _start(session, storage, customer())
    storage.put(started.storage_key)

    with pytest.raises(PayloadTooLargeError) as exc_info:
        await kyc_service.complete_upload(
            session, customer(), started.document_id, _complete(size=6 * 1024 * 1024), storage
        )
    assert exc_info.value.status_code == 413


async def test_complete_rejects_empty_file(session, world, storage):
    started = await _start(session, storage, customer())
    storage.put(started.storage_key)

    with pytest.raises(ValidationFailedError):
        await kyc_service.complete_upload(
            session, customer(), started.document_id, _complete(size=0), storage
        )


@pytest.mark.parametrize("content_type", ["text/plain", "application/zip", "image/gif"])
async def test_complete_rejects_disallowed_type(session, world, storage, content_type):
    started = await _start(session, storage, customer())
    storage.put(started.storage_key)

    with pytest.raises(UnsupportedMediaTypeError) as exc_info:
        await kyc_service.complete_upload(
            session,
            customer(),
            started.document_id,
            _complete(content_type=content_type),
            storage,
        )
    assert exc_info.value.status_code == 415


async def test_complete_twice_conflicts(session, world, storage):
    started = await _start(session, storage, customer())
    storage.put(started.storage_key)
    await kyc_service.complete_upload(
        session, customer(), started.document_id, _complete(), storage
    )

    with pytest.raises(InvalidStateTransitionError):
        await kyc_service.complete_upload(
            session, customer(), started.document_id, _complete(), storage
        )


async def test_complete_other_users_document_forbidden(session, world, storage):
    started = await _start(session, storage, customer())
    storage.put(started.storage_key)

    with pytest.raises(ForbiddenError):
        await kyc_service.complete_upload(
            session, other_customer(), started.document_id, _complete(), storage
        )


async def test_complete_on_behalf_of_wrong_owner_is_not_found(session, world, storage):
    started = await _start(session, storage, banker(), target_user_id=CUSTOMER_USER_ID)
    storage.put(started.storage_key)

    with pytest.raises(NotFoundError):
        await kyc_service.complete_upload(
            session,
            banker(),
            started.document_id,
            _complete(),
            storage,
            target_user_id=OTHER_CUSTOMER_USER_ID,
        )


async def test_merchant_completes_for_linked_customer(session, world, storage):
    started = await _start(session, storage, merchant(), target_user_id=CUSTOMER_USER_ID)
    storage.put(started.storage_key)

    doc = await kyc_service.complete_upload(
        session,
        merchant(),
        started.document_id,
        _complete(),
        storage,
        target_user_id=CUSTOMER_USER_ID,
    )
    assert doc.status == KYCDocumentStatus.PENDING
    assert doc.user_id == CUSTOMER_USER_ID


async def test_complete_missing_document(session, world, storage):
    with pytest.raises(NotFoundError):
        await kyc_service.complete_upload(session, customer(), 4040, _complete(), storage)

