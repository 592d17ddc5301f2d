"""
Identity API endpoints.

Users router: user CRUD, role membership and identity documents.
Identity router: realm bootstrap, administrator creation, directory sync
and the current caller's profile.

Callers authenticate with an identity provider bearer token; see jwt_auth.
"""
import mimetypes
from typing import List
from uuid import UUID

from django.http import HttpRequest, HttpResponse
from ninja import File, Router
from ninja.errors import HttpError
from ninja.files import UploadedFile

from .bootstrap import BootstrapResult, initialize_realm_roles
from .decorators import has_permission, require_auth
from .directory import get_directory_client
from .dtos import AdminCreate, UserCreate, UserDTO, UserUpdate
from .permissions import Permissions
from .services import find_by_external_id, get_user_dto, list_users, to_user_dto
from .sync_service import get_user_sync_service

users_router = Router(tags=["Users"])
router = Router(tags=["Identity"])


# =============================================================================
# Users
# =============================================================================

@users_router.get("", response=List[UserDTO])
@has_permission(Permissions.IDENTITY_VIEW_USER)
def list_all_users(request: HttpRequest):
    return list_users()


@users_router.get("/{user_id}", response=UserDTO)
@has_permission(Permissions.IDENTITY_VIEW_USER)
def get_user(request: HttpRequest, user_id: UUID):
    user = get_user_dto(user_id)
    if not user:
        raise HttpError(404, "User not found")
    return user


@users_router.post("", response={201: UserDTO})
@has_permission(Permissions.IDENTITY_MANAGE_USER)
def create_user(request: HttpRequest, payload: UserCreate):
    """
    Create a user in the identity provider and locally.

    When the identity provider is unavailable the user is still created,
    flagged as degraded.
    """
    return 201, get_user_sync_service().create_user(payload)


@users_router.put("/{user_id}", response=UserDTO)
@has_permission(Permissions.IDENTITY_MANAGE_USER)
def update_user(request: HttpRequest, user_id: UUID, payload: UserUpdate):
    return get_user_sync_service().update_user(user_id, payload.dict(exclude_unset=True))


@users_router.delete("/{user_id}", response={204: None})
@has_permission(Permissions.IDENTITY_MANAGE_USER)
def delete_user(request: HttpRequest, user_id: UUID):
    get_user_sync_service().delete_user(user_id)
    return 204, None


@users_router.put("/{user_id}/roles/{role}", response=UserDTO)
@has_permission(Permissions.IDENTITY_MANAGE_ROLES)
def assign_role(request: HttpRequest, user_id: UUID, role: str):
    return get_user_sync_service().assign_role(user_id, role)


@users_router.delete("/{user_id}/roles/{role}", response=UserDTO)
@has_permission(Permissions.IDENTITY_MANAGE_ROLES)
def remove_role(request: HttpRequest, user_id: UUID, role: str):
    return get_user_sync_service().remove_role(user_id, role)


@users_router.post("/{user_id}/document", response=UserDTO)
@has_permission(Permissions.IDENTITY_UPLOAD_DOCUMENT)
def upload_identity_document(request: HttpRequest, user_id: UUID, file: UploadedFile = File(...)):
    """
    Upload the user's identity document (JPEG, PNG or PDF, max 10 MB).

    Replaces any previous document.
    """
    return get_user_sync_service().upload_identity_document(
        user_id,
        file.read(),
        file.name,
        file.content_type,
    )


@users_router.get("/{user_id}/document")
@has_permission(Permissions.IDENTITY_VIEW_DOCUMENT)
def download_identity_document(request: HttpRequest, user_id: UUID):
    service = get_user_sync_service()
    content = service.download_identity_document(user_id)
    url = service.get_user(user_id).identity_document_url
    content_type, _ = mimetypes.guess_type(url)

    response = HttpResponse(content, content_type=content_type or 'application/octet-stream')
    response['Content-Disposition'] = f'inline; filename="{url.rsplit("/", 1)[-1]}"'
    return response


# =============================================================================
# Identity
# =============================================================================

@router.get("/me", response=UserDTO)
def get_me(request: HttpRequest):
    """
    Get the current caller's local profile.
    """
    principal = require_auth(request)
    user = find_by_external_id(principal.subject)
    if not user:
        raise HttpError(404, "User not found")
    return to_user_dto(user)


@router.post("/init-roles", response=BootstrapResult)
@has_permission(Permissions.IDENTITY_MANAGE_REALM)
def init_roles(request: HttpRequest):
    """
    Create the ADMIN and USER realm roles in the identity provider if missing.
    """
    return initialize_realm_roles(get_directory_client())


@router.post("/create-admin", response={201: UserDTO})
@has_permission(Permissions.IDENTITY_MANAGE_REALM)
def create_admin(request: HttpRequest, payload: AdminCreate):
    user = get_user_sync_service().create_admin_user(
        payload.email,
        payload.password,
        payload.first_name,
        payload.last_name,
    )
    return 201, user


@router.post("/sync/{external_id}", response=UserDTO)
@has_permission(Permissions.IDENTITY_MANAGE_USER)
def sync_user(request: HttpRequest, external_id: str):
    """
    Refresh the local user from the identity provider account.
    """
    return get_user_sync_service().sync_user_from_directory(external_id)
