from typing import List
from uuid import UUID
from ninja import Router
from django.http import HttpRequest

from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from .dtos import ProjectDTO, ProjectCreate, ProjectUpdate
from . import services

router = Router(tags=["Projects"])


@router.get("", response=List[ProjectDTO])
@has_permission(Permissions.PROJECTS_VIEW)
def list_projects(request: HttpRequest):
    """List all projects, newest first."""
    return services.list_projects()


@router.post("", response={201: ProjectDTO})
@has_permission(Permissions.PROJECTS_MANAGE)
def create_project(request: HttpRequest, payload: ProjectCreate):
    return 201, services.create_project(payload)


@router.get("/responsible/{user_id}", response=List[ProjectDTO])
@has_permission(Permissions.PROJECTS_VIEW)
def list_projects_by_responsible(request: HttpRequest, user_id: UUID):
    return services.list_projects_by_responsible(user_id)


@router.get("/{project_id}", response=ProjectDTO)
@has_permission(Permissions.PROJECTS_VIEW)
def get_project(request: HttpRequest, project_id: UUID):
    return services.get_project_dto(project_id)


@router.put("/{project_id}", response=ProjectDTO)
@has_permission(Permissions.PROJECTS_MANAGE)
def update_project(request: HttpRequest, project_id: UUID, payload: ProjectUpdate):
    return services.update_project(project_id, payload.dict(exclude_unset=True))


@router.delete("/{project_id}", response={204: None})
@has_permission(Permissions.PROJECTS_MANAGE)
def delete_project(request: HttpRequest, project_id: UUID):
    """Delete a project together with its tasks."""
    services.delete_project(project_id)
    return 204, None
