"""S3-compatible object storage client (Cloudflare R2, MinIO, AWS S3).

Low-level operations return ``None`` / ``False`` on failure and log the
cause; ``infrastructure.storage`` turns those into exceptions.
"""

from __future__ import annotations

import logging
import os
from typing import Optional

import boto3
from botocore.client import Config
from botocore.exceptions import BotoCoreError, ClientError


logger = logging.getLogger(__name__)

# Cached client
_S3_CLIENT = None


def _get_s3_client():
    """Get or create cached boto3 S3 client for the configured endpoint."""
    global _S3_CLIENT

    if _S3_CLIENT is not None:
        return _S3_CLIENT

    endpoint_url = (os.getenv("STORAGE_ENDPOINT_URL") or "").strip() or None
    access_key_id = os.getenv("STORAGE_ACCESS_KEY_ID")
    secret_access_key = os.getenv("STORAGE_SECRET_ACCESS_KEY")
    region = os.getenv("STORAGE_REGION", "auto")

    if not all([access_key_id, secret_access_key]):
        logger.warning(
            "Missing storage credentials (STORAGE_ACCESS_KEY_ID, STORAGE_SECRET_ACCESS_KEY). "
            "Storage operations will fail."
        )
        return None

    try:
        client = boto3.client(
            "s3",
            endpoint_url=endpoint_url,
            aws_access_key_id=access_key_id,
            aws_secret_access_key=secret_access_key,
            config=Config(
                signature_version="s3v4",
                s3={"addressing_style": "path"},
            ),
            region_name=region,
        )
    except (BotoCoreError, ValueError) as e:
        logger.error("[s3] Failed to initialize client: %s", e)
        return None

    _S3_CLIENT = client
    logger.info("[s3] Client initialized for endpoint %s", endpoint_url or "aws")
    return client


def reset_client() -> None:
    """Drop the cached client (credentials rotated, tests)."""
    global _S3_CLIENT
    _S3_CLIENT = None


def upload_bytes(
    bucket_name: str,
    key: str,
    data: bytes,
    content_type: str = "application/octet-stream",
) -> bool:
    client = _get_s3_client()
    if client is None:
        logger.error("[s3] Cannot upload %s - client not initialized", key)
        return False

    try:
        client.put_object(Bucket=bucket_name, Key=key, Body=data, ContentType=content_type)
        logger.info("[s3] Uploaded %d bytes to %s", len(data), key)
        return True
    except (ClientError, BotoCoreError) as e:
        logger.error("[s3] Failed to upload %s: %s", key, e)
        return False


def delete_objects(bucket_name: str, keys: list[str]) -> bool:
    """Delete several objects in one request. Missing keys count as deleted."""
    if not keys:
        return True
    client = _get_s3_client()
    if client is None:
        logger.error("[s3] Cannot delete - client not initialized")
        return False

    try:
        response = client.delete_objects(
            Bucket=bucket_name,
            Delete={"Objects": [{"Key": k} for k in keys], "Quiet": True},
        )
    except (ClientError, BotoCoreError) as e:
        logger.error("[s3] Failed to delete %d objects: %s", len(keys), e)
        return False

    errors = response.get("Errors") or []
    if errors:
        logger.error("[s3] Delete reported %d errors: %s", len(errors), errors[:3])
        return False
    logger.info("[s3] Deleted %d objects from bucket %s", len(keys), bucket_name)
    return True


def generate_signed_url(bucket_name: str, key: str, expiration: int = 3600) -> Optional[str]:
    """Presigned GET URL for ``key``, or None if signing failed."""
    client = _get_s3_client()
    if client is None:
        logger.error("[s3] Cannot sign %s - client not initialized", key)
        return None

    try:
        url = client.generate_presigned_url(
            ClientMethod="get_object",
            Params={"Bucket": bucket_name, "Key": key},
            ExpiresIn=expiration,
        )
        logger.debug("[s3] Generated signed URL for %s (expires in %ss)", key, expiration)
        return url
    except (ClientError, BotoCoreError) as e:
        logger.error("[s3] Failed to generate signed URL for %s: %s", key, e)
        return None
