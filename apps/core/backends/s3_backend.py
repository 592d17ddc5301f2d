"""
S3 Blob Backend - AWS S3 (or any S3-compatible store) via django-storages.

All objects live in AWS_STORAGE_BUCKET_NAME; the logical bucket passed to
upload() becomes a key prefix. URLs are unsigned (AWS_QUERYSTRING_AUTH=False)
so a stored reference maps back to its object key.

Usage:
    Set BLOB_BACKEND=s3 in your .env file.
    Requires AWS credentials and a bucket (see config/storage.py).
"""
import logging
import uuid
from urllib.parse import unquote, urlparse

from django.core.files.base import ContentFile

from apps.core.blob_service import BlobStorage
from apps.core.exceptions import BlobStorageError

logger = logging.getLogger(__name__)


class S3BlobStorage(BlobStorage):
    """Store blobs in S3 through S3Boto3Storage."""

    def __init__(self, storage=None):
        self._storage = storage

    @property
    def storage(self):
        """Lazy initialization of the S3 storage."""
        if self._storage is None:
            from storages.backends.s3boto3 import S3Boto3Storage
            self._storage = S3Boto3Storage()
        return self._storage

    def upload(self, content: bytes, filename_hint: str, bucket: str) -> str:
        path = f"{bucket}/{uuid.uuid4().hex}_{filename_hint or 'file'}"
        try:
            saved_path = self.storage.save(path, ContentFile(content))
            url = self.storage.url(saved_path)
        except Exception as e:
            logger.error(f"[S3] Upload failed for {path}: {e}")
            raise BlobStorageError(f"Failed to upload to S3: {e}")

        logger.info(f"[S3] Stored {len(content)} bytes at {saved_path}")
        return url

    def download(self, url: str) -> bytes:
        key = self._key_from_url(url)
        try:
            with self.storage.open(key, 'rb') as fh:
                return fh.read()
        except Exception as e:
            logger.error(f"[S3] Download failed for {key}: {e}")
            raise BlobStorageError(f"Failed to download from S3: {e}")

    def delete(self, url: str) -> None:
        key = self._key_from_url(url)
        try:
            self.storage.delete(key)
        except Exception as e:
            logger.error(f"[S3] Delete failed for {key}: {e}")
            raise BlobStorageError(f"Failed to delete from S3: {e}")
        logger.info(f"[S3] Deleted {key}")

    def _key_from_url(self, url: str) -> str:
        key = unquote(urlparse(url).path).lstrip('/')
        # Path-style URLs carry the bucket as first segment
        bucket_prefix = f"{self.storage.bucket_name}/"
        if key.startswith(bucket_prefix):
            key = key[len(bucket_prefix):]
        if not key:
            raise BlobStorageError(f"Cannot derive object key from URL: {url}")
        return key
