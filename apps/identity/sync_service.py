"""
User synchronization between the identity provider and the local store.

Every mutating flow calls the identity provider first and only touches the
local database once the remote step has returned. The one exception is user
creation: when the provider is unreachable or refuses the call, the user is
stored locally with a placeholder external id (degraded mode) so the
application keeps working.

Flow summary:
- create: local duplicate check, remote create, local insert
- update: remote update, local update (provider down or forbidden: local only)
- delete: remote delete, local delete, document cleanup
- assign/remove role: remote change, local change
- sync: remote read, local upsert
"""
import logging
from typing import Iterable, List, Optional, Set
from uuid import UUID

from django.conf import settings
from django.db import IntegrityError, transaction

from apps.core.blob_service import BlobStorage, get_blob_storage
from apps.core.exceptions import (
    AuthorityError,
    AuthorityForbidden,
    AuthorityNotFound,
    AuthorityUnreachable,
    BlobStorageError,
    ConflictError,
    DuplicateEmail,
    NotFoundError,
    SynchronizationFailed,
    UserNotFound,
    ValidationError,
)
from . import services
from .directory import DirectoryProfile, IdentityDirectoryClient, get_directory_client
from .dtos import UserCreate, UserDTO
from .models import Role, User

logger = logging.getLogger(__name__)

# Provider failures that create and update tolerate
DEGRADABLE_ERRORS = (AuthorityUnreachable, AuthorityForbidden)

ALLOWED_DOCUMENT_TYPES = {
    'image/jpeg': '.jpg',
    'image/png': '.png',
    'application/pdf': '.pdf',
}

PROFILE_FIELDS = ('email', 'first_name', 'last_name', 'birth_date', 'phone')


class UserSyncService:
    """Keeps local User records consistent with identity provider accounts."""

    def __init__(self, directory: IdentityDirectoryClient, blobs: Optional[BlobStorage] = None):
        self.directory = directory
        self.blobs = blobs

    # =========================================================================
    # Reads
    # =========================================================================

    def list_users(self) -> List[UserDTO]:
        return services.list_users()

    def get_user(self, user_id: UUID) -> UserDTO:
        user = services.get_user_dto(user_id)
        if not user:
            raise UserNotFound(user_id)
        return user

    def get_user_by_external_id(self, external_id: str) -> UserDTO:
        user = services.find_by_external_id(external_id)
        if not user:
            raise UserNotFound(external_id)
        return services.to_user_dto(user)

    # =========================================================================
    # Create
    # =========================================================================

    def create_user(self, payload: UserCreate) -> UserDTO:
        """
        Create a user in the identity provider, then locally.

        If the provider is unreachable or refuses the call, the user is
        created locally with a placeholder external id. Nothing is rolled
        back remotely if the local insert fails afterwards.

        Raises:
            ValidationError: invalid profile fields or role names
            DuplicateEmail: the email is already used locally
            SynchronizationFailed: the provider rejected the account
        """
        email = (payload.email or '').strip()
        logger.info(f"Creating user: {email}")

        services.validate_profile(email, payload.first_name, payload.last_name)
        if not payload.password:
            raise ValidationError("Validation failed", {"password": "Password is required"})
        roles = self._initial_roles(payload.roles)

        if services.email_exists(email):
            raise DuplicateEmail(email)

        profile = DirectoryProfile(
            email=email,
            first_name=payload.first_name.strip(),
            last_name=payload.last_name.strip(),
        )
        try:
            external_id = self.directory.create_account(profile, payload.password)
        except DEGRADABLE_ERRORS as e:
            external_id = services.mint_local_external_id()
            logger.warning(
                f"Identity provider unavailable ({e}); creating {email} locally "
                f"with placeholder id {external_id}"
            )
        except AuthorityError as e:
            logger.error(f"Identity provider rejected account for {email}: {e}")
            raise SynchronizationFailed(f"Could not create identity account for {email}: {e}")
        else:
            self._grant_roles(external_id, roles)

        try:
            with transaction.atomic():
                user = User.objects.create(
                    external_id=external_id,
                    email=email,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                    birth_date=payload.birth_date,
                    phone=payload.phone or '',
                )
                services.set_roles(user, roles)
        except IntegrityError:
            logger.error(f"Concurrent insert for {email}; provider account {external_id} is orphaned")
            raise DuplicateEmail(email)

        logger.info(f"User created with ID: {user.id} (external: {external_id})")
        return services.get_user_dto(user.id)

    def _initial_roles(self, requested: Optional[Iterable]) -> Set[str]:
        roles = {services.parse_role(r).value for r in (requested or [])}
        return roles or {Role.USER.value}

    def _grant_roles(self, external_id: str, roles: Iterable[str]) -> None:
        for role in sorted(roles):
            try:
                self.directory.assign_role(external_id, role)
            except AuthorityError as e:
                logger.warning(f"Could not assign role {role} to {external_id}: {e}")

    # =========================================================================
    # Update
    # =========================================================================

    def update_user(self, user_id: UUID, data: dict) -> UserDTO:
        """
        Update profile fields remotely, then locally.

        `data` holds the fields to change; None values are ignored.

        Raises:
            UserNotFound: no such user
            DuplicateEmail: the new email belongs to another user
            SynchronizationFailed: the provider rejected the change
        """
        user = services.get_user(user_id)
        changes = {k: v for k, v in data.items() if k in PROFILE_FIELDS and v is not None}
        if 'email' in changes:
            changes['email'] = changes['email'].strip()

        profile = DirectoryProfile(
            external_id=user.external_id,
            email=changes.get('email', user.email),
            first_name=changes.get('first_name', user.first_name),
            last_name=changes.get('last_name', user.last_name),
        )
        services.validate_profile(profile.email, profile.first_name, profile.last_name)
        if services.email_exists(profile.email, exclude_user_id=user.id):
            raise DuplicateEmail(profile.email)

        logger.info(f"Updating user {user.id} (external: {user.external_id})")
        try:
            self.directory.update_account(user.external_id, profile)
        except DEGRADABLE_ERRORS as e:
            logger.warning(f"Identity provider unavailable ({e}); updating user {user.id} locally only")
        except AuthorityError as e:
            logger.error(f"Update aborted for user {user.id}: {e}")
            raise SynchronizationFailed(f"Could not update identity account of user {user.id}: {e}")

        try:
            with transaction.atomic():
                for field, value in changes.items():
                    setattr(user, field, value)
                user.save()
        except IntegrityError:
            raise DuplicateEmail(profile.email)

        return services.get_user_dto(user.id)

    # =========================================================================
    # Delete
    # =========================================================================

    def delete_user(self, user_id: UUID) -> None:
        """
        Delete the provider account, then the local user and their document.

        Any provider failure aborts the delete.

        Raises:
            UserNotFound: no such user
            ConflictError: the user is still responsible for projects
        """
        user = services.get_user(user_id)
        if user.responsible_projects.exists():
            raise ConflictError(f"User {user.id} is responsible for projects and cannot be deleted")

        logger.info(f"Deleting user {user.id} (external: {user.external_id})")
        try:
            self.directory.delete_account(user.external_id)
        except DEGRADABLE_ERRORS as e:
            logger.error(f"Delete aborted for user {user.id}: {e}")
            raise
        except AuthorityError as e:
            logger.error(f"Delete aborted for user {user.id}: {e}")
            raise SynchronizationFailed(f"Could not delete identity account of user {user.id}: {e}")

        document_url = user.identity_document_url
        with transaction.atomic():
            user.delete()
        logger.info(f"User deleted: {user_id}")

        if document_url and self.blobs:
            try:
                self.blobs.delete(document_url)
            except BlobStorageError as e:
                logger.warning(f"Could not delete identity document {document_url}: {e}")

    # =========================================================================
    # Roles
    # =========================================================================

    def assign_role(self, user_id: UUID, role) -> UserDTO:
        role = services.parse_role(role)
        user = services.get_user(user_id)

        logger.info(f"Assigning role {role} to user {user.id}")
        self._change_remote_role(self.directory.assign_role, user, role, "Role assignment")
        services.add_role(user, role)
        return services.get_user_dto(user.id)

    def remove_role(self, user_id: UUID, role) -> UserDTO:
        """Remove a role. Removing the last role is allowed."""
        role = services.parse_role(role)
        user = services.get_user(user_id)

        logger.info(f"Removing role {role} from user {user.id}")
        self._change_remote_role(self.directory.remove_role, user, role, "Role removal")
        services.remove_role(user, role)
        return services.get_user_dto(user.id)

    def _change_remote_role(self, call, user: User, role: Role, action: str) -> None:
        try:
            call(user.external_id, role.value)
        except DEGRADABLE_ERRORS as e:
            logger.error(f"{action} aborted for user {user.id}: {e}")
            raise
        except AuthorityError as e:
            logger.error(f"{action} aborted for user {user.id}: {e}")
            raise SynchronizationFailed(f"{action} of {role} failed for user {user.id}: {e}")

    # =========================================================================
    # Directory sync
    # =========================================================================

    def sync_user_from_directory(self, external_id: str) -> UserDTO:
        """
        Upsert the local user from the provider's account and effective roles.

        Only ADMIN and USER are mirrored; an account with neither gets USER.
        Rows are written only when something differs.
        """
        try:
            profile = self.directory.get_account(external_id)
            remote_roles = self.directory.list_effective_roles(external_id)
        except AuthorityNotFound:
            raise UserNotFound(external_id)

        roles = {r for r in remote_roles if r in Role.values} or {Role.USER.value}
        email = profile.email.strip()
        if not email:
            raise ValidationError("Validation failed", {"email": f"Provider account {external_id} has no email"})
        if User.objects.filter(email__iexact=email).exclude(external_id=external_id).exists():
            raise DuplicateEmail(email)

        user = services.find_by_external_id(external_id)
        try:
            user = self._upsert_from_directory(user, external_id, email, profile, roles)
        except IntegrityError:
            logger.error(f"Could not store provider account {external_id}: email {email} already in use")
            raise DuplicateEmail(email)

        return services.get_user_dto(user.id)

    def _upsert_from_directory(
        self,
        user: Optional[User],
        external_id: str,
        email: str,
        profile: DirectoryProfile,
        roles: Set[str],
    ) -> User:
        with transaction.atomic():
            if user is None:
                user = User.objects.create(
                    external_id=external_id,
                    email=email,
                    first_name=profile.first_name,
                    last_name=profile.last_name,
                )
                services.set_roles(user, roles)
                logger.info(f"Synchronized new user {user.id} from directory ({external_id})")
            else:
                changed = []
                for field, value in (
                    ('email', email),
                    ('first_name', profile.first_name),
                    ('last_name', profile.last_name),
                ):
                    if getattr(user, field) != value:
                        setattr(user, field, value)
                        changed.append(field)
                if changed:
                    user.save(update_fields=changed + ['updated_at'])
                if user.role_names != roles:
                    services.set_roles(user, roles)
                    changed.append('roles')
                if changed:
                    logger.info(f"Synchronized user {user.id} from directory: {', '.join(changed)}")

        return user

    # =========================================================================
    # Administrator bootstrap
    # =========================================================================

    def create_admin_user(self, email: str, password: str, first_name: str, last_name: str) -> UserDTO:
        """
        Make sure an administrator account exists remotely and locally.

        An existing provider account with this email is reused.
        """
        email = (email or '').strip()
        services.validate_profile(email, first_name, last_name)

        existing = self.directory.find_by_email(email)
        if existing and existing.external_id:
            external_id = existing.external_id
            logger.info(f"Admin account already exists in identity provider: {email}")
        else:
            profile = DirectoryProfile(email=email, first_name=first_name, last_name=last_name)
            external_id = self.directory.create_account(profile, password)
        self.directory.assign_role(external_id, Role.ADMIN.value)

        with transaction.atomic():
            user = services.find_by_email(email)
            if user is None:
                user = User.objects.create(
                    external_id=external_id,
                    email=email,
                    first_name=first_name,
                    last_name=last_name,
                )
                logger.info(f"Admin user created locally: {email}")
            elif user.external_id != external_id:
                # e.g. a degraded user whose placeholder id is now known remotely
                logger.info(f"Linking local user {user.id} to provider account {external_id}")
                user.external_id = external_id
                user.save(update_fields=['external_id', 'updated_at'])
            services.add_role(user, Role.ADMIN)

        return services.get_user_dto(user.id)

    # =========================================================================
    # Identity document
    # =========================================================================

    def upload_identity_document(
        self,
        user_id: UUID,
        content: bytes,
        filename: str,
        content_type: Optional[str],
    ) -> UserDTO:
        """
        Store a new identity document, replacing the previous one.

        The previous blob is deleted before the upload. If the upload then
        fails the user is left without a document.
        """
        max_size = settings.IDENTITY_DOCUMENT_MAX_SIZE
        if len(content) > max_size:
            raise ValidationError(
                "Validation failed",
                {"file": f"File too large. Maximum size is {max_size // (1024 * 1024)} MB"},
            )
        if content_type not in ALLOWED_DOCUMENT_TYPES:
            raise ValidationError(
                "Validation failed",
                {"file": f"Invalid file type: {content_type}. Allowed: JPEG, PNG, PDF"},
            )

        user = services.get_user(user_id)
        blobs = self._blob_storage()

        if user.identity_document_url:
            blobs.delete(user.identity_document_url)
            user.identity_document_url = None
            user.save(update_fields=['identity_document_url', 'updated_at'])

        url = blobs.upload(content, filename or f"document{ALLOWED_DOCUMENT_TYPES[content_type]}",
                           settings.IDENTITY_DOCUMENT_BUCKET)
        user.identity_document_url = url
        user.save(update_fields=['identity_document_url', 'updated_at'])
        logger.info(f"Identity document stored for user {user.id}: {url}")

        return services.get_user_dto(user.id)

    def download_identity_document(self, user_id: UUID) -> bytes:
        user = services.get_user(user_id)
        if not user.identity_document_url:
            raise NotFoundError("Identity document", user_id)
        return self._blob_storage().download(user.identity_document_url)

    def _blob_storage(self) -> BlobStorage:
        if self.blobs is None:
            self.blobs = get_blob_storage()
        return self.blobs


def get_user_sync_service() -> UserSyncService:
    """Build the service with the configured directory and blob storage."""
    return UserSyncService(get_directory_client(), get_blob_storage())
