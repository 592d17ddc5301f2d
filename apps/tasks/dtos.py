"""DTOs for Tasks app."""
from dataclasses import dataclass
from datetime import datetime
from typing import Optional
from uuid import UUID

from ninja import Schema

from apps.identity.dtos import UserBriefDTO
from apps.projects.dtos import ProjectBriefDTO
from .models import Priority, TaskStatus


@dataclass(frozen=True)
class TaskDTO:
    id: UUID
    title: str
    description: str
    status: str
    priority: str
    project_id: UUID
    project: ProjectBriefDTO
    assignee_id: Optional[UUID]
    assignee: Optional[UserBriefDTO]
    created_at: datetime
    updated_at: datetime


class TaskIn(Schema):
    """Task payload for create and full update."""
    title: str
    description: str = ""
    status: TaskStatus = TaskStatus.TODO
    priority: Priority = Priority.MEDIUM
    project_id: UUID
    assignee_id: Optional[UUID] = None
