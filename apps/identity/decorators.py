from functools import wraps
from typing import Callable
from ninja.errors import HttpError
from django.http import HttpRequest
from .jwt_auth import Principal, get_principal
from .permissions import get_user_permissions


def require_auth(request: HttpRequest) -> Principal:
    """
    Require authentication. Raises 401 if not authenticated.

    The caller is also stored on request.principal.
    """
    principal = get_principal(request)
    if not principal:
        raise HttpError(401, "Authentication required")
    request.principal = principal
    return principal


def has_permission(required_perm: str):
    """
    Decorator to enforce a specific permission on a Django Ninja endpoint.

    Usage:
        @router.get("/some-path")
        @has_permission(Permissions.SOME_PERM)
        def my_view(request):
            ...
    """
    def decorator(view_func: Callable):
        @wraps(view_func)
        def wrapper(request: HttpRequest, *args, **kwargs):
            principal = require_auth(request)

            perms = get_user_permissions(principal)
            if required_perm not in perms:
                raise HttpError(403, "Permission denied")

            return view_func(request, *args, **kwargs)
        return wrapper
    return decorator
