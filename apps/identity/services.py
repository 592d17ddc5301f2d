"""Services for Identity app - local user store."""
import uuid
from typing import Iterable, List, Optional
from uuid import UUID

from django.core.exceptions import ValidationError as DjangoValidationError
from django.core.validators import validate_email

from apps.core.exceptions import UserNotFound, ValidationError
from .models import LOCAL_EXTERNAL_ID_PREFIX, Role, RoleMembership, User
from .dtos import UserDTO, UserBriefDTO


def mint_local_external_id() -> str:
    """Placeholder external id for an account the provider does not know yet."""
    return f"{LOCAL_EXTERNAL_ID_PREFIX}{uuid.uuid4()}"


def to_user_dto(user: User) -> UserDTO:
    return UserDTO(
        id=user.id,
        external_id=user.external_id,
        last_name=user.last_name,
        first_name=user.first_name,
        birth_date=user.birth_date,
        email=user.email,
        phone=user.phone,
        identity_document_url=user.identity_document_url,
        roles=sorted(user.role_names),
        degraded=user.is_degraded,
        created_at=user.created_at,
        updated_at=user.updated_at,
    )


def to_user_brief(user: User) -> UserBriefDTO:
    return UserBriefDTO(
        id=user.id,
        last_name=user.last_name,
        first_name=user.first_name,
        email=user.email,
    )


def get_user(user_id: UUID) -> User:
    try:
        return User.objects.get(id=user_id)
    except User.DoesNotExist:
        raise UserNotFound(user_id)


def get_user_dto(user_id: UUID) -> Optional[UserDTO]:
    try:
        user = User.objects.prefetch_related('role_memberships').get(id=user_id)
        return to_user_dto(user)
    except User.DoesNotExist:
        return None


def list_users() -> List[UserDTO]:
    users = User.objects.prefetch_related('role_memberships')
    return [to_user_dto(u) for u in users]


def find_by_external_id(external_id: str) -> Optional[User]:
    return User.objects.filter(external_id=external_id).first()


def find_by_email(email: str) -> Optional[User]:
    return User.objects.filter(email__iexact=email.strip()).first()


def email_exists(email: str, exclude_user_id: Optional[UUID] = None) -> bool:
    queryset = User.objects.filter(email__iexact=email.strip())
    if exclude_user_id:
        queryset = queryset.exclude(id=exclude_user_id)
    return queryset.exists()


def parse_role(role) -> Role:
    try:
        return Role(str(role).upper())
    except ValueError:
        raise ValidationError(
            f"Unknown role: {role}",
            {"role": f"Must be one of: {', '.join(Role.values)}"},
        )


def set_roles(user: User, roles: Iterable[str]) -> None:
    """Replace the user's role set."""
    wanted = set(roles)
    RoleMembership.objects.filter(user=user).exclude(role__in=wanted).delete()
    existing = set(RoleMembership.objects.filter(user=user).values_list('role', flat=True))
    RoleMembership.objects.bulk_create(
        [RoleMembership(user=user, role=role) for role in sorted(wanted - existing)]
    )


def add_role(user: User, role: str) -> None:
    RoleMembership.objects.get_or_create(user=user, role=role)


def remove_role(user: User, role: str) -> None:
    RoleMembership.objects.filter(user=user, role=role).delete()


def validate_profile(email: str, first_name: str, last_name: str) -> None:
    """Field-level checks shared by create and update."""
    errors = {}
    try:
        validate_email(email or '')
    except DjangoValidationError:
        errors['email'] = "Enter a valid email address"
    if not (first_name or '').strip():
        errors['first_name'] = "First name is required"
    if not (last_name or '').strip():
        errors['last_name'] = "Last name is required"
    if errors:
        raise ValidationError("Validation failed", errors)
