"""DTOs for Projects app."""
from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from uuid import UUID

from ninja import Schema

from apps.identity.dtos import UserBriefDTO


@dataclass(frozen=True)
class ProjectDTO:
    id: UUID
    name: str
    description: str
    start_date: date
    end_date: Optional[date]
    responsible_id: UUID
    responsible: UserBriefDTO
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class ProjectBriefDTO:
    """Minimal project view nested in task responses."""
    id: UUID
    name: str


class ProjectCreate(Schema):
    name: str
    description: str = ""
    start_date: date
    end_date: Optional[date] = None
    responsible_id: UUID


class ProjectUpdate(Schema):
    name: Optional[str] = None
    description: Optional[str] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    responsible_id: Optional[UUID] = None
