# This project was developed with assistance from AI tools.
"""S3-compatible object storage service backed by MinIO.

Uses boto3 synchronous client run in a thread-pool executor for async
compatibility. One instance is built in the app lifespan and handed to
request handlers through ``dependencies.get_storage``.
"""

import asyncio
import logging
import os
import uuid
from functools import partial

import boto3
from botocore.config import Config as BotoConfig
from botocore.exceptions import ClientError

from ..core.config import Settings

logger = logging.getLogger(__name__)

_MISSING_OBJECT_CODES = {"404", "NoSuchKey", "NotFound"}


class StorageService:
    """Thin wrapper around a boto3 S3 client."""

    def __init__(
        self,
        endpoint: str,
        access_key: str,
        secret_key: str,
        bucket: str,
        region: str = "us-east-1",
    ):
        self._bucket = bucket
        self._client = boto3.client(
            "s3",
            endpoint_url=endpoint,
            aws_access_key_id=access_key,
            aws_secret_access_key=secret_key,
            region_name=region,
            config=BotoConfig(
                signature_version="s3v4",
                s3={
                    "addressing_style": "path",
                    "use_accelerate_endpoint": False,
                },
            ),
        )
        self._ensure_bucket()

    @classmethod
    def from_settings(cls, cfg: Settings) -> "StorageService":
        service = cls(
            endpoint=cfg.S3_ENDPOINT,
            access_key=cfg.S3_ACCESS_KEY,
            secret_key=cfg.S3_SECRET_KEY,
            bucket=cfg.S3_BUCKET,
            region=cfg.S3_REGION,
        )
        logger.info("StorageService initialised (bucket=%s)", cfg.S3_BUCKET)
        return service

    def _ensure_bucket(self) -> None:
        """Create the bucket if it doesn't already exist (dev convenience)."""
        try:
            self._client.head_bucket(Bucket=self._bucket)
        except ClientError:
            logger.info("Creating S3 bucket: %s", self._bucket)
            self._client.create_bucket(Bucket=self._bucket)

    async def exists(self, object_key: str) -> bool:
        """Return True if the object exists. A missing object is False, not an error."""
        loop = asyncio.get_running_loop()
        try:
            await loop.run_in_executor(
                None,
                partial(self._client.head_object, Bucket=self._bucket, Key=object_key),
            )
        except ClientError as exc:
            code = str(exc.response.get("Error", {}).get("Code", ""))
            if code in _MISSING_OBJECT_CODES:
                return False
            raise
        return True

    async def generate_upload_signature(
        self,
        object_key: str,
        *,
        max_size: int,
        expires_in: int = 600,
    ) -> dict:
        """Return presigned POST parameters (``url`` + ``fields``) for one object key."""
        loop = asyncio.get_running_loop()
        signed: dict = await loop.run_in_executor(
            None,
            partial(
                self._client.generate_presigned_post,
                Bucket=self._bucket,
                Key=object_key,
                Conditions=[
                    ["content-length-range", 1, max_size],
                    ["starts-with", "$Content-Type", ""],
                ],
                ExpiresIn=expires_in,
            ),
        )
        return signed

    @staticmethod
    def build_kyc_object_key(user_id: str, doc_type: str, document_id: int) -> str:
        """Build the KYC object key: {user_id}/{doc_type}/{document_id}."""
        return f"{user_id}/{doc_type}/{document_id}"

    @staticmethod
    def build_loan_document_key(owner_id: str, filename: str) -> str:
        """Build a loan document key: {owner_id}/loan-documents/{uuid}-{filename}.

        Strips path components from filename to prevent path traversal attacks.
        """
        token = uuid.uuid4().hex
        safe_name = os.path.basename(filename) or "document"
        return f"{owner_id}/loan-documents/{token}-{safe_name}"
