"""S3-compatible object storage for store, category and product images.

The database only stores object keys. Clients receive short-lived presigned
URLs built from those keys.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

import boto3
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError
from loguru import logger

from storefront.core.concurrency import run_in_thread_storage
from storefront.core.config import settings


@lru_cache(maxsize=1)
def botocore_config() -> Config:
    return Config(
        retries={"max_attempts": 5, "mode": "standard"},
        connect_timeout=3,
        read_timeout=15,
        signature_version="s3v4",
        s3={"addressing_style": "path"},
    )


@lru_cache(maxsize=1)
def s3_client():
    return boto3.client(
        "s3",
        endpoint_url=settings.STORAGE_ENDPOINT,
        aws_access_key_id=settings.STORAGE_ACCESS_KEY,
        aws_secret_access_key=settings.STORAGE_SECRET_KEY,
        region_name=settings.STORAGE_REGION,
        config=botocore_config(),
    )


def _put(key: str, data: bytes, content_type: Optional[str]) -> None:
    params = {"Bucket": settings.STORAGE_BUCKET, "Key": key, "Body": data}
    if content_type:
        params["ContentType"] = content_type
    s3_client().put_object(**params)


def _delete(key: str) -> None:
    s3_client().delete_object(Bucket=settings.STORAGE_BUCKET, Key=key)


async def upload_object(key: str, data: bytes, content_type: Optional[str] = None) -> str:
    """Store ``data`` under ``key`` and return the key."""

    await run_in_thread_storage(_put, key, data, content_type)
    logger.bind(key=key, size=len(data)).info("storage_object_uploaded")
    return key


async def delete_object(key: Optional[str]) -> None:
    """Delete an object; failures are logged and swallowed."""

    if not key:
        return
    try:
        await run_in_thread_storage(_delete, key)
    except (BotoCoreError, ClientError) as exc:
        logger.bind(key=key, error=str(exc)).warning("storage_delete_failed")
        return
    logger.bind(key=key).info("storage_object_deleted")


def presigned_url(key: Optional[str]) -> Optional[str]:
    """Return a GET URL for ``key`` or ``None`` when it is empty or signing fails."""

    if not key:
        return None
    try:
        return s3_client().generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": settings.STORAGE_BUCKET, "Key": key},
            ExpiresIn=settings.STORAGE_PRESIGN_EXPIRES_SEC,
        )
    except (BotoCoreError, ClientError) as exc:
        logger.bind(key=key, error=str(exc)).warning("storage_presign_failed")
        return None
