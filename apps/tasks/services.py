"""
Services for Tasks app.
"""
import logging
from typing import Dict, List, Optional
from uuid import UUID

from django.db.models import Count

from apps.core.exceptions import NotFoundError, UserNotFound, ValidationError
from apps.identity.models import User
from apps.identity.services import to_user_brief
from apps.projects.models import Project
from apps.projects.services import to_project_brief
from .models import Task, TaskStatus
from .dtos import TaskDTO

logger = logging.getLogger(__name__)

MAX_TITLE_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000


def to_task_dto(task: Task) -> TaskDTO:
    return TaskDTO(
        id=task.id,
        title=task.title,
        description=task.description,
        status=str(task.status),
        priority=str(task.priority),
        project_id=task.project_id,
        project=to_project_brief(task.project),
        assignee_id=task.assignee_id,
        assignee=to_user_brief(task.assignee) if task.assignee else None,
        created_at=task.created_at,
        updated_at=task.updated_at,
    )


def _tasks():
    return Task.objects.select_related('project', 'assignee')


def _validate(title: str, description: str) -> None:
    errors = {}
    if not (title or '').strip():
        errors['title'] = "Title is required"
    elif len(title) > MAX_TITLE_LENGTH:
        errors['title'] = f"Title too long (max {MAX_TITLE_LENGTH} characters)"
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        errors['description'] = f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)"
    if errors:
        raise ValidationError("Validation failed", errors)


def _get_project(project_id: UUID) -> Project:
    try:
        return Project.objects.get(id=project_id)
    except Project.DoesNotExist:
        raise NotFoundError("Project", project_id)


def _get_assignee(user_id: Optional[UUID]) -> Optional[User]:
    if user_id is None:
        return None
    try:
        return User.objects.get(id=user_id)
    except User.DoesNotExist:
        raise UserNotFound(user_id)


def get_task(task_id: UUID) -> Task:
    try:
        return _tasks().get(id=task_id)
    except Task.DoesNotExist:
        raise NotFoundError("Task", task_id)


def create_task(payload) -> TaskDTO:
    logger.info(f"Creating task: {payload.title}")
    _validate(payload.title, payload.description)

    task = Task.objects.create(
        title=payload.title.strip(),
        description=payload.description or '',
        status=payload.status,
        priority=payload.priority,
        project=_get_project(payload.project_id),
        assignee=_get_assignee(payload.assignee_id),
    )
    logger.info(f"Task created successfully: {task.id}")
    return to_task_dto(task)


def list_tasks() -> List[TaskDTO]:
    return [to_task_dto(t) for t in _tasks()]


def get_task_dto(task_id: UUID) -> TaskDTO:
    return to_task_dto(get_task(task_id))


def list_tasks_by_project(project_id: UUID) -> List[TaskDTO]:
    project = _get_project(project_id)
    return [to_task_dto(t) for t in _tasks().filter(project=project)]


def list_tasks_by_assignee(user_id: UUID) -> List[TaskDTO]:
    assignee = _get_assignee(user_id)
    return [to_task_dto(t) for t in _tasks().filter(assignee=assignee)]


def filter_tasks(
    assignee_id: Optional[UUID] = None,
    status: Optional[str] = None,
    project_id: Optional[UUID] = None,
) -> List[TaskDTO]:
    """Tasks matching every criterion given; None matches anything."""
    logger.info(f"Filtering tasks - assignee: {assignee_id}, status: {status}, project: {project_id}")
    queryset = _tasks()
    if assignee_id:
        queryset = queryset.filter(assignee_id=assignee_id)
    if status:
        queryset = queryset.filter(status=status)
    if project_id:
        queryset = queryset.filter(project_id=project_id)
    return [to_task_dto(t) for t in queryset]


def update_task(task_id: UUID, payload) -> TaskDTO:
    """
    Replace a task's fields.

    The assignee is cleared when the payload carries none.
    """
    logger.info(f"Updating task: {task_id}")
    task = get_task(task_id)
    _validate(payload.title, payload.description)

    task.title = payload.title.strip()
    task.description = payload.description or ''
    task.status = payload.status
    task.priority = payload.priority
    if payload.project_id:
        task.project = _get_project(payload.project_id)
    task.assignee = _get_assignee(payload.assignee_id)
    task.save()

    logger.info(f"Task updated successfully: {task.id}")
    return to_task_dto(task)


def update_task_status(task_id: UUID, status: str) -> TaskDTO:
    logger.info(f"Updating task status: {task_id} -> {status}")
    task = get_task(task_id)
    task.status = status
    task.save(update_fields=['status', 'updated_at'])
    return to_task_dto(task)


def delete_task(task_id: UUID) -> None:
    logger.info(f"Deleting task: {task_id}")
    get_task(task_id).delete()
    logger.info(f"Task deleted successfully: {task_id}")


def count_by_status(project_id: UUID) -> Dict[str, int]:
    """Number of tasks per status in a project, zero for unused statuses."""
    project = _get_project(project_id)
    counts = {status: 0 for status in TaskStatus.values}
    rows = Task.objects.filter(project=project).order_by().values('status').annotate(count=Count('id'))
    for row in rows:
        counts[row['status']] = row['count']
    return counts
