"""
BlobStorage - Abstraction layer for object storage.

Stores opaque file references (URLs) on records while the bytes live in an
external object store. The backend is chosen by the BLOB_BACKEND setting.

Usage:
    from apps.core.blob_service import get_blob_storage

    storage = get_blob_storage()
    url = storage.upload(content, "passport.pdf", "identity-documents")
    data = storage.download(url)
    storage.delete(url)

Environment Configuration:
    BLOB_BACKEND=local  # Django default_storage under MEDIA_ROOT (development)
    BLOB_BACKEND=http   # RustFS-style HTTP API
    BLOB_BACKEND=s3     # AWS S3 via django-storages
"""
import logging
from abc import ABC, abstractmethod

from django.conf import settings

logger = logging.getLogger(__name__)


class BlobStorage(ABC):
    """
    Abstract interface for object storage.

    Implementations:
    - LocalBlobStorage: Django default_storage for development/testing
    - HttpBlobStorage: object storage HTTP API (multipart upload, GET, DELETE)
    - S3BlobStorage: AWS S3 through django-storages

    Every method raises BlobStorageError when the store cannot complete it.
    """

    @abstractmethod
    def upload(self, content: bytes, filename_hint: str, bucket: str) -> str:
        """
        Store bytes and return an opaque reference URL.

        Args:
            content: File bytes
            filename_hint: Original file name, kept in the stored name
            bucket: Bucket (or key prefix) to store under
        """

    @abstractmethod
    def download(self, url: str) -> bytes:
        """Return the bytes behind a reference URL."""

    @abstractmethod
    def delete(self, url: str) -> None:
        """Remove the object behind a reference URL."""


def get_blob_storage() -> BlobStorage:
    """Get the configured blob backend based on the BLOB_BACKEND setting."""
    backend = getattr(settings, 'BLOB_BACKEND', 'local')

    if backend == 'local':
        from apps.core.backends.local_backend import LocalBlobStorage
        return LocalBlobStorage()
    elif backend == 'http':
        from apps.core.backends.http_backend import HttpBlobStorage
        return HttpBlobStorage(
            base_url=settings.BLOB_BASE_URL,
            upload_path=settings.BLOB_UPLOAD_PATH,
            timeout=settings.BLOB_TIMEOUT,
        )
    elif backend == 's3':
        from apps.core.backends.s3_backend import S3BlobStorage
        return S3BlobStorage()
    else:
        raise ValueError(f"Unknown BLOB_BACKEND: {backend}")
