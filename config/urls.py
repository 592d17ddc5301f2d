"""
URL configuration for the project management API.
"""
import logging
from datetime import datetime, timezone

from django.contrib import admin
from django.db.models import ProtectedError
from django.urls import path
from django.conf import settings
from django.conf.urls.static import static
from ninja import NinjaAPI
from ninja.errors import HttpError, ValidationError as SchemaValidationError

from apps.core.exceptions import ServiceError, ValidationError

logger = logging.getLogger(__name__)

api = NinjaAPI(
    title="Gestion Projet API",
    version="1.0.0",
    description="Project and task management with identity provider synchronization",
    docs_url="/docs",
)


def error_response(request, status: int, error: str, message: str, validation_errors=None):
    body = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'status': status,
        'error': error,
        'message': message,
        'path': request.path,
    }
    if validation_errors:
        body['validation_errors'] = validation_errors
    return api.create_response(request, body, status=status)


@api.exception_handler(ServiceError)
def service_error(request, exc: ServiceError):
    if exc.status_code >= 500:
        logger.error(f"{request.method} {request.path} failed: {exc.message}")
    else:
        logger.info(f"{request.method} {request.path} rejected: {exc.message}")
    errors = exc.errors if isinstance(exc, ValidationError) else None
    return error_response(request, exc.status_code, exc.title, exc.message, errors)


@api.exception_handler(SchemaValidationError)
def schema_validation_error(request, exc: SchemaValidationError):
    errors = {}
    for err in exc.errors:
        # Drop the leading "body"/"query"/"path" and the payload parameter name
        loc = [str(part) for part in err.get('loc', ())][2:] or [str(p) for p in err.get('loc', ())]
        errors['.'.join(loc)] = err.get('msg', 'Invalid value')
    return error_response(request, 400, "Validation Error", "Validation failed", errors)


@api.exception_handler(HttpError)
def http_error(request, exc: HttpError):
    return error_response(request, exc.status_code, "Request Error", str(exc))


@api.exception_handler(ProtectedError)
def protected_error(request, exc: ProtectedError):
    return error_response(request, 409, "Conflict", "Resource is still referenced and cannot be deleted")


from apps.identity.api import router as identity_router, users_router
from apps.projects.api import router as projects_router
from apps.tasks.api import router as tasks_router

api.add_router("/users", users_router)
api.add_router("/identity", identity_router)
api.add_router("/projects", projects_router)
api.add_router("/tasks", tasks_router)

urlpatterns = [
    path('admin/', admin.site.urls),
    path('api/', api.urls),
]

# Serve media files in development
if settings.DEBUG:
    urlpatterns += static(
        getattr(settings, 'MEDIA_URL', '/media/'),
        document_root=getattr(settings, 'MEDIA_ROOT', settings.BASE_DIR / 'media')
    )
