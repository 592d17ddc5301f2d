"""
Services for Projects app.
This is the public API for other apps to interact with projects.
"""
import logging
from datetime import date
from typing import List, Optional
from uuid import UUID

from django.db import transaction

from apps.core.exceptions import NotFoundError, ValidationError
from apps.identity.models import User
from apps.identity.services import to_user_brief
from .models import Project
from .dtos import ProjectDTO, ProjectBriefDTO

logger = logging.getLogger(__name__)

MAX_NAME_LENGTH = 200
MAX_DESCRIPTION_LENGTH = 1000


def to_project_dto(project: Project) -> ProjectDTO:
    return ProjectDTO(
        id=project.id,
        name=project.name,
        description=project.description,
        start_date=project.start_date,
        end_date=project.end_date,
        responsible_id=project.responsible_id,
        responsible=to_user_brief(project.responsible),
        created_at=project.created_at,
        updated_at=project.updated_at,
    )


def to_project_brief(project: Project) -> ProjectBriefDTO:
    return ProjectBriefDTO(id=project.id, name=project.name)


def _validate(name: str, description: str, start_date: date, end_date: Optional[date]) -> None:
    errors = {}
    if not (name or '').strip():
        errors['name'] = "Project name is required"
    elif len(name) > MAX_NAME_LENGTH:
        errors['name'] = f"Name too long (max {MAX_NAME_LENGTH} characters)"
    if description and len(description) > MAX_DESCRIPTION_LENGTH:
        errors['description'] = f"Description too long (max {MAX_DESCRIPTION_LENGTH} characters)"
    if end_date and start_date and end_date < start_date:
        errors['end_date'] = "End date must be on or after the start date"
    if errors:
        raise ValidationError("Validation failed", errors)


def _get_responsible(user_id: UUID) -> User:
    try:
        return User.objects.get(id=user_id)
    except User.DoesNotExist:
        raise NotFoundError("Responsible user", user_id)


def get_project(project_id: UUID) -> Project:
    try:
        return Project.objects.select_related('responsible').get(id=project_id)
    except Project.DoesNotExist:
        raise NotFoundError("Project", project_id)


def create_project(payload) -> ProjectDTO:
    logger.info(f"Creating project: {payload.name}")
    _validate(payload.name, payload.description, payload.start_date, payload.end_date)
    responsible = _get_responsible(payload.responsible_id)

    project = Project.objects.create(
        name=payload.name.strip(),
        description=payload.description or '',
        start_date=payload.start_date,
        end_date=payload.end_date,
        responsible=responsible,
    )
    logger.info(f"Project created successfully: {project.id}")
    return to_project_dto(project)


def list_projects() -> List[ProjectDTO]:
    projects = Project.objects.select_related('responsible')
    return [to_project_dto(p) for p in projects]


def get_project_dto(project_id: UUID) -> ProjectDTO:
    return to_project_dto(get_project(project_id))


def list_projects_by_responsible(user_id: UUID) -> List[ProjectDTO]:
    responsible = _get_responsible(user_id)
    projects = Project.objects.select_related('responsible').filter(responsible=responsible)
    return [to_project_dto(p) for p in projects]


def update_project(project_id: UUID, data: dict) -> ProjectDTO:
    """
    Update a project. Fields that are missing or None keep their value.
    """
    logger.info(f"Updating project: {project_id}")
    project = get_project(project_id)
    changes = {k: v for k, v in data.items() if v is not None}

    _validate(
        changes.get('name', project.name),
        changes.get('description', project.description),
        changes.get('start_date', project.start_date),
        changes.get('end_date', project.end_date),
    )

    with transaction.atomic():
        responsible_id = changes.pop('responsible_id', None)
        if responsible_id:
            project.responsible = _get_responsible(responsible_id)
        for field, value in changes.items():
            setattr(project, field, value)
        project.save()

    logger.info(f"Project updated successfully: {project.id}")
    return to_project_dto(project)


def delete_project(project_id: UUID) -> None:
    """Delete a project and its tasks."""
    logger.info(f"Deleting project: {project_id}")
    project = get_project(project_id)
    project.delete()
    logger.info(f"Project deleted successfully: {project_id}")
