"""Object storage collaborator backed by S3."""

from __future__ import annotations

import asyncio
from typing import Any, Protocol

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from file_api.exceptions import ExternalServiceError
from file_api.logging_config import get_logger

logger = get_logger(__name__)


class ObjectStore(Protocol):
    bucket: str

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None: ...

    async def presign(
        self,
        key: str,
        expires_in: int,
        *,
        bucket: str | None = None,
        filename: str | None = None,
    ) -> str: ...


class S3ObjectStore:
    """Uploads and presigned download URLs for one bucket.

    boto3 calls are blocking and run in a worker thread.
    """

    def __init__(self, bucket: str, region: str = "us-east-1", *, client: Any = None) -> None:
        if not bucket:
            raise ValueError("S3_BUCKET_NAME is required")
        self.bucket = bucket
        self._client = client or boto3.client("s3", region_name=region)

    async def put(
        self,
        key: str,
        data: bytes,
        content_type: str,
        metadata: dict[str, str] | None = None,
    ) -> None:
        try:
            await asyncio.to_thread(
                self._client.put_object,
                Bucket=self.bucket,
                Key=key,
                Body=data,
                ContentType=content_type,
                Metadata=metadata or {},
                ServerSideEncryption="AES256",
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("S3 upload failed", extra={"s3_key": key, "error": str(exc)})
            raise ExternalServiceError("S3", "Failed to upload file") from exc

    async def presign(
        self,
        key: str,
        expires_in: int,
        *,
        bucket: str | None = None,
        filename: str | None = None,
    ) -> str:
        params = {"Bucket": bucket or self.bucket, "Key": key}
        if filename:
            params["ResponseContentDisposition"] = f'attachment; filename="{filename}"'
        try:
            url: str = await asyncio.to_thread(
                self._client.generate_presigned_url,
                "get_object",
                Params=params,
                ExpiresIn=expires_in,
            )
        except (BotoCoreError, ClientError) as exc:
            logger.error("Presigning failed", extra={"s3_key": key, "error": str(exc)})
            raise ExternalServiceError("S3", "Failed to generate download URL") from exc
        return url
