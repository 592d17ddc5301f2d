"""
Local Blob Backend - Django default_storage for development.

Files are saved under MEDIA_ROOT as <bucket>/<uuid>_<filename> and referenced
by their MEDIA_URL path. No object store required.

Usage:
    Set BLOB_BACKEND=local in your .env file.
"""
import logging
import uuid

from django.conf import settings
from django.core.files.base import ContentFile
from django.core.files.storage import default_storage

from apps.core.blob_service import BlobStorage
from apps.core.exceptions import BlobStorageError

logger = logging.getLogger(__name__)


class LocalBlobStorage(BlobStorage):
    """Store blobs through Django's default storage."""

    def __init__(self, storage=None):
        self.storage = storage or default_storage

    @property
    def media_url(self) -> str:
        return getattr(settings, 'MEDIA_URL', '/media/')

    def upload(self, content: bytes, filename_hint: str, bucket: str) -> str:
        path = f"{bucket}/{uuid.uuid4().hex}_{filename_hint or 'file'}"
        try:
            saved_path = self.storage.save(path, ContentFile(content))
        except OSError as e:
            logger.error(f"[LOCAL] Upload failed for {path}: {e}")
            raise BlobStorageError(f"Failed to store file: {e}")

        logger.info(f"[LOCAL] Stored {len(content)} bytes at {saved_path}")
        return f"{self.media_url}{saved_path}"

    def download(self, url: str) -> bytes:
        path = self._path_from_url(url)
        if not self.storage.exists(path):
            raise BlobStorageError(f"File not found: {url}")
        with self.storage.open(path, 'rb') as fh:
            return fh.read()

    def delete(self, url: str) -> None:
        path = self._path_from_url(url)
        self.storage.delete(path)
        logger.info(f"[LOCAL] Deleted {path}")

    def _path_from_url(self, url: str) -> str:
        if not url.startswith(self.media_url):
            raise BlobStorageError(f"Not a local media URL: {url}")
        return url[len(self.media_url):]
