"""
Core app - Shared abstractions and utilities.

This app provides platform-agnostic pieces used by the other apps:
- Service error taxonomy (exceptions)
- Object storage for file references (BlobStorage)

The storage abstraction allows switching between:
- Local development (Django default_storage)
- RustFS-style HTTP object storage
- AWS S3
"""
