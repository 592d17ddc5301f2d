"""
Storage configuration for the project management backend.

Identity documents go through the blob client in apps.core.blob_service.
Three backends are supported:
- local: Django FileSystemStorage under MEDIA_ROOT (development)
- http:  RustFS-style object storage HTTP API (multipart upload, GET, DELETE)
- s3:    AWS S3 through django-storages
"""
import os
from pathlib import Path

BLOB_BACKEND = os.getenv('BLOB_BACKEND', 'local').lower()

# Check if S3 should be used
USE_S3 = BLOB_BACKEND == 's3'


def get_storage_settings(base_dir: Path) -> dict:
    """
    Returns storage-related settings based on environment configuration.

    Args:
        base_dir: The BASE_DIR from Django settings

    Returns:
        Dictionary of storage settings to be merged into Django settings
    """
    config = {
        'BLOB_BACKEND': BLOB_BACKEND,
        'BLOB_BASE_URL': os.getenv('BLOB_BASE_URL', 'http://localhost:8081').rstrip('/'),
        'BLOB_UPLOAD_PATH': os.getenv('BLOB_UPLOAD_PATH', '/api/v1/upload'),
        'BLOB_TIMEOUT': float(os.getenv('BLOB_TIMEOUT', '30')),
        'MEDIA_URL': '/media/',
        'MEDIA_ROOT': base_dir / 'media',
    }

    if USE_S3:
        # Production: Use AWS S3
        config.update({
            'AWS_ACCESS_KEY_ID': os.getenv('AWS_ACCESS_KEY_ID'),
            'AWS_SECRET_ACCESS_KEY': os.getenv('AWS_SECRET_ACCESS_KEY'),
            'AWS_STORAGE_BUCKET_NAME': os.getenv('AWS_STORAGE_BUCKET_NAME', 'gestion-projet-documents'),
            'AWS_S3_REGION_NAME': os.getenv('AWS_S3_REGION_NAME', 'eu-west-3'),
            'AWS_S3_ENDPOINT_URL': os.getenv('AWS_S3_ENDPOINT_URL') or None,
            'AWS_S3_FILE_OVERWRITE': False,
            'AWS_DEFAULT_ACL': 'private',
            'AWS_S3_CUSTOM_DOMAIN': os.getenv('AWS_S3_CUSTOM_DOMAIN') or None,
            # Unsigned URLs so a stored reference maps back to its object key
            'AWS_QUERYSTRING_AUTH': False,
        })
    return config

