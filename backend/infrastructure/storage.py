"""Photo blob store.

Thin layer over ``infrastructure.s3`` that pins the bucket and raises
``StorageError`` on failure, so callers never have to check for ``None``.

Environment Variables:
    STORAGE_BUCKET: bucket holding item photos (default: "photos")
"""

from __future__ import annotations

import logging
import os
from typing import Iterable, Optional

import httpx

from infrastructure import s3


logger = logging.getLogger(__name__)

# Short-lived URLs are enough for a server-side fetch during export
FETCH_URL_TTL_SECONDS = 60


class StorageError(RuntimeError):
    """A blob store operation failed."""


def _get_bucket_name() -> str:
    return os.getenv("STORAGE_BUCKET", "photos").strip()


def upload_bytes(key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
    """Store ``data`` under ``key`` and return the key."""
    bucket = _get_bucket_name()
    if not s3.upload_bytes(bucket, key, data, content_type):
        raise StorageError(f"upload failed for {key}")
    return key


def delete_blobs(keys: Iterable[str]) -> None:
    keys = [k for k in keys if k]
    if not keys:
        return
    if not s3.delete_objects(_get_bucket_name(), keys):
        raise StorageError(f"delete failed for {len(keys)} object(s)")


def generate_signed_url(key: str, expiration: int = 3600) -> str:
    url = s3.generate_signed_url(_get_bucket_name(), key, expiration=expiration)
    if not url:
        raise StorageError(f"could not sign {key}")
    return url


def fetch_via_signed_url(key: str, *, timeout: float = 15.0, client: Optional[httpx.Client] = None) -> bytes:
    """Download ``key`` through a short-lived signed URL.

    Raises StorageError on a signing failure, transport error or non-2xx status.
    """
    url = generate_signed_url(key, expiration=FETCH_URL_TTL_SECONDS)
    try:
        if client is not None:
            resp = client.get(url, timeout=timeout)
        else:
            resp = httpx.get(url, timeout=timeout, follow_redirects=True)
        resp.raise_for_status()
    except httpx.HTTPError as e:
        logger.warning("[storage] fetch failed for %s: %s", key, e)
        raise StorageError(f"fetch failed for {key}") from e
    return resp.content


__all__ = [
    "StorageError",
    "FETCH_URL_TTL_SECONDS",
    "upload_bytes",
    "delete_blobs",
    "generate_signed_url",
    "fetch_via_signed_url",
]
