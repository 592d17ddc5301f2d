"""
HTTP Blob Backend - RustFS-style object storage over plain HTTP.

Upload is a multipart POST to BLOB_BASE_URL + BLOB_UPLOAD_PATH with the
bucket and filename as query parameters; the response body is the URL of the
stored file. Download and delete are GET / DELETE on that URL.

Usage:
    Set BLOB_BACKEND=http in your .env file.

Environment Variables:
    BLOB_BASE_URL: Storage server root (default: http://localhost:8081)
    BLOB_UPLOAD_PATH: Upload endpoint path (default: /api/v1/upload)
    BLOB_TIMEOUT: Per-request timeout in seconds (default: 30)
"""
import logging
from typing import Optional

import requests

from apps.core.blob_service import BlobStorage
from apps.core.exceptions import BlobStorageError

logger = logging.getLogger(__name__)


class HttpBlobStorage(BlobStorage):
    """Store blobs through an object storage HTTP API."""

    def __init__(
        self,
        base_url: str,
        upload_path: str = '/api/v1/upload',
        timeout: float = 30,
        session: Optional[requests.Session] = None,
    ):
        self.base_url = base_url.rstrip('/')
        self.upload_path = upload_path
        self.timeout = timeout
        self.session = session or requests.Session()

    def _absolute(self, url: str) -> str:
        if url.startswith('http://') or url.startswith('https://'):
            return url
        return f"{self.base_url}/{url.lstrip('/')}"

    def _request(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except requests.RequestException as e:
            logger.error(f"[HTTP] {method} {url} failed: {e}")
            raise BlobStorageError(f"Storage server unreachable: {e}")

        if resp.status_code >= 400:
            logger.error(f"[HTTP] {method} {url} -> {resp.status_code}: {resp.text[:200]}")
            raise BlobStorageError(f"Storage server returned {resp.status_code}")
        return resp

    def upload(self, content: bytes, filename_hint: str, bucket: str) -> str:
        logger.info(f"[HTTP] Uploading {filename_hint} ({len(content)} bytes) to bucket {bucket}")
        resp = self._request(
            'POST',
            f"{self.base_url}{self.upload_path}",
            params={'bucket': bucket, 'filename': filename_hint},
            files={'file': (filename_hint, content)},
        )
        file_url = resp.text.strip()
        if not file_url:
            raise BlobStorageError("Storage server returned an empty file URL")

        logger.info(f"[HTTP] File uploaded: {file_url}")
        return file_url

    def download(self, url: str) -> bytes:
        logger.info(f"[HTTP] Downloading {url}")
        return self._request('GET', self._absolute(url)).content

    def delete(self, url: str) -> None:
        logger.info(f"[HTTP] Deleting {url}")
        self._request('DELETE', self._absolute(url))
