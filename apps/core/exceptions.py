"""
Service-level error taxonomy.

Services raise these; config/urls.py maps them to HTTP responses.

    ServiceError
    ├── ValidationError          400  malformed or constraint-violating input
    ├── NotFoundError            404  referenced entity absent
    │   └── UserNotFound
    ├── ConflictError            409  uniqueness or integrity conflict
    │   └── DuplicateEmail
    ├── SynchronizationFailed    500  unexpected identity provider failure
    ├── BlobStorageError         502  object storage call failed
    └── AuthorityError           502  identity provider call failed
        ├── AuthorityUnreachable 503
        ├── AuthorityForbidden   502
        └── AuthorityNotFound    502
"""
from typing import Dict, Optional


class ServiceError(Exception):
    status_code = 500
    title = "Internal Server Error"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message or self.title


class ValidationError(ServiceError):
    status_code = 400
    title = "Validation Error"

    def __init__(self, message: str, errors: Optional[Dict[str, str]] = None):
        super().__init__(message)
        self.errors = errors or {}


class NotFoundError(ServiceError):
    status_code = 404
    title = "Not Found"

    def __init__(self, resource: str, identifier):
        super().__init__(f"{resource} not found with id: {identifier}")
        self.resource = resource
        self.identifier = identifier


class UserNotFound(NotFoundError):
    def __init__(self, identifier):
        super().__init__("User", identifier)


class ConflictError(ServiceError):
    status_code = 409
    title = "Conflict"


class DuplicateEmail(ConflictError):
    def __init__(self, email: str):
        super().__init__(f"User with email {email} already exists")
        self.email = email


class SynchronizationFailed(ServiceError):
    status_code = 500
    title = "Synchronization Failed"


class BlobStorageError(ServiceError):
    status_code = 502
    title = "Storage Error"


class AuthorityError(ServiceError):
    """Any failed call against the identity provider."""
    status_code = 502
    title = "Identity Provider Error"

    def __init__(self, message: str = "", status: Optional[int] = None):
        super().__init__(message)
        self.status = status


class AuthorityUnreachable(AuthorityError):
    status_code = 503
    title = "Identity Provider Unavailable"


class AuthorityForbidden(AuthorityError):
    title = "Identity Provider Refused"


class AuthorityNotFound(AuthorityError):
    title = "Identity Account Not Found"
