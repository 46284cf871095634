# This project was developed with assistance from AI tools.
"""Document ownership verification.

A storage key is owned by the identity named in its first path segment
(``{owner_id}/...``). Ownership is a namespace convention enforced here,
not by storage ACLs: an object that exists under someone else's prefix is
treated as not owned.
"""

import asyncio
import logging
from collections.abc import Iterable
from typing import Protocol

logger = logging.getLogger(__name__)


class ObjectStore(Protocol):
    async def exists(self, object_key: str) -> bool: ...


def owner_segment(storage_key: str) -> str | None:
    """Return the first path segment of a key, or None when the key has no namespace."""
    head, sep, rest = storage_key.partition("/")
    if not sep or not head or not rest:
        return None
    return head


class DocumentOwnershipVerifier:
    def __init__(self, storage: ObjectStore):
        self._storage = storage

    async def verify(self, storage_key: str, expected_owner_ids: Iterable[str | None]) -> bool:
        owners = {str(owner) for owner in expected_owner_ids if owner}
        owner = owner_segment(storage_key)
        if owner is None or owner not in owners:
            logger.warning(
                "Document ownership mismatch: key=%s owner=%s expected=%s",
                storage_key,
                owner,
                sorted(owners),
            )
            return False

        if not await self._storage.exists(storage_key):
            logger.warning("Document not found in storage: key=%s", storage_key)
            return False
        return True

    async def verify_many(
        self,
        storage_keys: list[str],
        expected_owner_ids: Iterable[str | None],
    ) -> list[str]:
        """Check every key concurrently; return the keys that failed, in input order."""
        owners = list(expected_owner_ids)
        results = await asyncio.gather(*(self.verify(key, owners) for key in storage_keys))
        return [key for key, ok in zip(storage_keys, results, strict=True) if not ok]
