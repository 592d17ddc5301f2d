from typing import List, Dict
from .models import Role

# Define all available permissions here for reference
class Permissions:
    # Identity
    IDENTITY_VIEW_USER = "identity.view_user"
    IDENTITY_MANAGE_USER = "identity.manage_user"
    IDENTITY_MANAGE_ROLES = "identity.manage_roles"
    IDENTITY_MANAGE_REALM = "identity.manage_realm"
    IDENTITY_UPLOAD_DOCUMENT = "identity.upload_document"
    IDENTITY_VIEW_DOCUMENT = "identity.view_document"

    # Projects
    PROJECTS_VIEW = "projects.view"
    PROJECTS_MANAGE = "projects.manage"

    # Tasks
    TASKS_VIEW = "tasks.view"
    TASKS_MANAGE = "tasks.manage"
    TASKS_UPDATE_STATUS = "tasks.update_status"


# Static Role -> Permission Mapping
ROLE_PERMISSIONS: Dict[str, List[str]] = {
    Role.ADMIN: [
        # Identity - Full access
        Permissions.IDENTITY_VIEW_USER,
        Permissions.IDENTITY_MANAGE_USER,
        Permissions.IDENTITY_MANAGE_ROLES,
        Permissions.IDENTITY_MANAGE_REALM,
        Permissions.IDENTITY_UPLOAD_DOCUMENT,
        Permissions.IDENTITY_VIEW_DOCUMENT,
        # Projects
        Permissions.PROJECTS_VIEW,
        Permissions.PROJECTS_MANAGE,
        # Tasks
        Permissions.TASKS_VIEW,
        Permissions.TASKS_MANAGE,
        Permissions.TASKS_UPDATE_STATUS,
    ],
    Role.USER: [
        # Identity - read only, documents allowed
        Permissions.IDENTITY_VIEW_USER,
        Permissions.IDENTITY_UPLOAD_DOCUMENT,
        Permissions.IDENTITY_VIEW_DOCUMENT,
        # Projects
        Permissions.PROJECTS_VIEW,
        Permissions.PROJECTS_MANAGE,
        # Tasks
        Permissions.TASKS_VIEW,
        Permissions.TASKS_MANAGE,
        Permissions.TASKS_UPDATE_STATUS,
    ],
}

def get_user_permissions(principal) -> List[str]:
    """
    Returns the permission strings granted by the caller's roles.

    Role names the application does not know (provider defaults such as
    offline_access) grant nothing.
    """
    if not principal:
        return []

    perms = set()
    for role in principal.roles:
        perms.update(ROLE_PERMISSIONS.get(role, []))
    return sorted(perms)
