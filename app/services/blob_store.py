"""
Photo blob storage backends
"""

import hashlib
import hmac
import logging
import os
import time
from datetime import timedelta
from functools import lru_cache
from typing import Optional, Protocol
from urllib.parse import quote

from google.api_core.exceptions import GoogleAPIError, NotFound

from app.core.config import settings
from app.core.errors import ErrorCode, ServiceError
from app.services.firebase_client import get_storage_bucket

logger = logging.getLogger(__name__)


class BlobStore(Protocol):
    def put(self, path: str, data: bytes, content_type: str) -> None: ...

    def remove(self, path: str) -> None: ...

    def signed_url(self, path: str, ttl_seconds: int) -> str: ...


class FirebaseBlobStore:
    """Firebase Cloud Storage bucket"""

    def __init__(self, bucket):
        self.bucket = bucket

    def put(self, path: str, data: bytes, content_type: str) -> None:
        blob = self.bucket.blob(path)
        try:
            # if_generation_match=0: never overwrite an existing object
            blob.upload_from_string(data, content_type=content_type, if_generation_match=0)
        except GoogleAPIError as e:
            logger.error(f"Firebase upload failed for {path}: {e}")
            raise ServiceError(ErrorCode.STORAGE_UPSTREAM_ERROR, "Photo upload failed", details=str(e))

    def remove(self, path: str) -> None:
        try:
            self.bucket.blob(path).delete()
        except NotFound:
            logger.warning(f"Firebase object already gone: {path}")
        except GoogleAPIError as e:
            logger.error(f"Firebase delete failed for {path}: {e}")
            raise ServiceError(ErrorCode.STORAGE_UPSTREAM_ERROR, "Photo delete failed", details=str(e))

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        try:
            return self.bucket.blob(path).generate_signed_url(
                expiration=timedelta(seconds=ttl_seconds),
                version="v4",
                method="GET",
            )
        except GoogleAPIError as e:
            logger.error(f"Firebase URL signing failed for {path}: {e}")
            raise ServiceError(ErrorCode.STORAGE_UPSTREAM_ERROR, "Failed to sign photo url", details=str(e))


class LocalBlobStore:
    """Files on local disk, served by /media with HMAC-signed expiring URLs"""

    def __init__(self, root: str, base_url: str, signing_key: str):
        self.root = root
        self.base_url = base_url.rstrip("/")
        self.signing_key = signing_key.encode("utf-8")

    def _full_path(self, path: str) -> str:
        full = os.path.abspath(os.path.join(self.root, path))
        if not full.startswith(os.path.abspath(self.root) + os.sep):
            raise ServiceError(ErrorCode.INVALID_PAYLOAD, f"Invalid storage path {path}")
        return full

    def put(self, path: str, data: bytes, content_type: str) -> None:
        full = self._full_path(path)
        if os.path.exists(full):
            raise ServiceError(ErrorCode.STORAGE_UPSTREAM_ERROR, f"Object already exists: {path}")
        try:
            os.makedirs(os.path.dirname(full), exist_ok=True)
            with open(full, "wb") as f:
                f.write(data)
        except OSError as e:
            logger.error(f"Local upload failed for {path}: {e}")
            raise ServiceError(ErrorCode.STORAGE_UPSTREAM_ERROR, "Photo upload failed", details=str(e))

    def remove(self, path: str) -> None:
        try:
            os.remove(self._full_path(path))
        except FileNotFoundError:
            logger.warning(f"Local object already gone: {path}")
        except OSError as e:
            logger.error(f"Local delete failed for {path}: {e}")
            raise ServiceError(ErrorCode.STORAGE_UPSTREAM_ERROR, "Photo delete failed", details=str(e))

    def sign(self, path: str, expires: int) -> str:
        message = f"{path}:{expires}".encode("utf-8")
        return hmac.new(self.signing_key, message, hashlib.sha256).hexdigest()

    def signed_url(self, path: str, ttl_seconds: int) -> str:
        expires = int(time.time()) + ttl_seconds
        return f"{self.base_url}/media/{quote(path)}?expires={expires}&signature={self.sign(path, expires)}"

    def open_signed(self, path: str, expires: int, signature: str, now: Optional[float] = None) -> Optional[str]:
        """Return the file path when the signature is valid and unexpired"""
        current = time.time() if now is None else now
        if expires < current:
            return None
        if not hmac.compare_digest(self.sign(path, expires), signature):
            return None
        full = self._full_path(path)
        return full if os.path.exists(full) else None


@lru_cache(maxsize=1)
def get_blob_store() -> BlobStore:
    bucket = get_storage_bucket()
    if bucket is not None:
        return FirebaseBlobStore(bucket)
    return LocalBlobStore(settings.UPLOAD_DIR, settings.BASE_URL, settings.MEDIA_SIGNING_KEY)
