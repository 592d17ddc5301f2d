"""DTOs for Identity app."""
from dataclasses import dataclass
from datetime import date, datetime
from uuid import UUID
from typing import Optional, List


@dataclass(frozen=True)
class UserDTO:
    id: UUID
    external_id: str
    last_name: str
    first_name: str
    birth_date: Optional[date]
    email: str
    phone: str
    identity_document_url: Optional[str]
    roles: List[str]
    degraded: bool
    created_at: datetime
    updated_at: datetime


@dataclass(frozen=True)
class UserBriefDTO:
    """Minimal user view nested in project and task responses."""
    id: UUID
    last_name: str
    first_name: str
    email: str


from ninja import Schema
from .models import Role


class UserCreate(Schema):
    email: str
    first_name: str
    last_name: str
    password: str
    birth_date: Optional[date] = None
    phone: Optional[str] = None
    roles: Optional[List[Role]] = None


class UserUpdate(Schema):
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    birth_date: Optional[date] = None
    phone: Optional[str] = None


class AdminCreate(Schema):
    email: str
    password: str
    first_name: str
    last_name: str
