from typing import Dict, List, Optional
from uuid import UUID
from ninja import Router
from django.http import HttpRequest

from apps.identity.decorators import has_permission
from apps.identity.permissions import Permissions
from .dtos import TaskDTO, TaskIn
from .models import TaskStatus
from . import services

router = Router(tags=["Tasks"])


@router.get("", response=List[TaskDTO])
@has_permission(Permissions.TASKS_VIEW)
def list_tasks(request: HttpRequest):
    return services.list_tasks()


@router.post("", response={201: TaskDTO})
@has_permission(Permissions.TASKS_MANAGE)
def create_task(request: HttpRequest, payload: TaskIn):
    return 201, services.create_task(payload)


@router.get("/filter", response=List[TaskDTO])
@has_permission(Permissions.TASKS_VIEW)
def filter_tasks(
    request: HttpRequest,
    assignee_id: Optional[UUID] = None,
    status: Optional[TaskStatus] = None,
    project_id: Optional[UUID] = None,
):
    """
    Filter tasks by assignee, status and project. Omitted filters match all tasks.
    """
    return services.filter_tasks(assignee_id=assignee_id, status=status, project_id=project_id)


@router.get("/project/{project_id}", response=List[TaskDTO])
@has_permission(Permissions.TASKS_VIEW)
def list_tasks_by_project(request: HttpRequest, project_id: UUID):
    return services.list_tasks_by_project(project_id)


@router.get("/project/{project_id}/stats", response=Dict[str, int])
@has_permission(Permissions.TASKS_VIEW)
def task_stats(request: HttpRequest, project_id: UUID):
    """Task count per status for a project."""
    return services.count_by_status(project_id)


@router.get("/assignee/{user_id}", response=List[TaskDTO])
@has_permission(Permissions.TASKS_VIEW)
def list_tasks_by_assignee(request: HttpRequest, user_id: UUID):
    return services.list_tasks_by_assignee(user_id)


@router.get("/{task_id}", response=TaskDTO)
@has_permission(Permissions.TASKS_VIEW)
def get_task(request: HttpRequest, task_id: UUID):
    return services.get_task_dto(task_id)


@router.put("/{task_id}", response=TaskDTO)
@has_permission(Permissions.TASKS_MANAGE)
def update_task(request: HttpRequest, task_id: UUID, payload: TaskIn):
    return services.update_task(task_id, payload)


@router.patch("/{task_id}/status", response=TaskDTO)
@has_permission(Permissions.TASKS_UPDATE_STATUS)
def update_task_status(request: HttpRequest, task_id: UUID, status: TaskStatus):
    return services.update_task_status(task_id, status)


@router.delete("/{task_id}", response={204: None})
@has_permission(Permissions.TASKS_MANAGE)
def delete_task(request: HttpRequest, task_id: UUID):
    services.delete_task(task_id)
    return 204, None
