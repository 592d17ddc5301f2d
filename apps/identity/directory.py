"""
Identity Directory - contract for the external identity provider.

The identity provider is the system of record for credentials and role
membership. Every operation acts on the remote provider only; none touches
the local database.

Each operation may raise (apps.core.exceptions):
- AuthorityUnreachable: the provider cannot be contacted
- AuthorityForbidden: the service credentials lack permission
- AuthorityNotFound: the referenced account (or role) does not exist
- AuthorityError: any other provider failure
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional, Set

from django.conf import settings


@dataclass
class DirectoryProfile:
    """Profile fields shared between the provider account and the local User."""
    email: str
    first_name: str
    last_name: str
    external_id: Optional[str] = None
    enabled: bool = True


class IdentityDirectoryClient(ABC):
    """
    Capability-scoped operations against the identity provider.

    Implementations:
    - KeycloakDirectoryClient: Keycloak admin REST API
    """

    @abstractmethod
    def create_account(self, profile: DirectoryProfile, password: str) -> str:
        """Create an enabled account and return the provider-issued id."""

    @abstractmethod
    def update_account(self, external_id: str, profile: DirectoryProfile) -> None:
        """Overwrite the account's email, first and last name."""

    @abstractmethod
    def delete_account(self, external_id: str) -> None:
        pass

    @abstractmethod
    def get_account(self, external_id: str) -> DirectoryProfile:
        pass

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[DirectoryProfile]:
        pass

    @abstractmethod
    def assign_role(self, external_id: str, role_name: str) -> None:
        pass

    @abstractmethod
    def remove_role(self, external_id: str, role_name: str) -> None:
        pass

    @abstractmethod
    def list_effective_roles(self, external_id: str) -> Set[str]:
        """Role names granted directly or through composites/defaults."""

    @abstractmethod
    def ensure_role(self, role_name: str, description: str = "") -> bool:
        """
        Create the realm role if missing.

        Returns:
            True if the role was created, False if it already existed
        """

    @abstractmethod
    def ping(self) -> None:
        """Raise an AuthorityError if the provider is not usable."""


def get_directory_client() -> IdentityDirectoryClient:
    """Build the directory client from settings."""
    from .keycloak_client import KeycloakDirectoryClient

    return KeycloakDirectoryClient(
        server_url=settings.KEYCLOAK_SERVER_URL,
        realm=settings.KEYCLOAK_REALM,
        client_id=settings.KEYCLOAK_CLIENT_ID,
        client_secret=settings.KEYCLOAK_CLIENT_SECRET,
        timeout=settings.KEYCLOAK_TIMEOUT,
    )
