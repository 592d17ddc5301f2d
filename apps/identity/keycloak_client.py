"""
Keycloak implementation of the identity directory.

Uses the admin REST API of a single realm, authenticated as a confidential
client through the client-credentials grant. The client needs the
realm-management service account roles manage-users, view-users and
manage-realm.
"""
import logging
import time
from typing import Any, Optional, Set

import requests

from apps.core.exceptions import (
    AuthorityError,
    AuthorityForbidden,
    AuthorityNotFound,
    AuthorityUnreachable,
)
from .directory import DirectoryProfile, IdentityDirectoryClient

logger = logging.getLogger(__name__)

# Refresh the service token this many seconds before it expires
TOKEN_EXPIRY_MARGIN = 30

_UNREACHABLE_STATUSES = {502, 503, 504}


class KeycloakDirectoryClient(IdentityDirectoryClient):
    """Admin REST client for one Keycloak realm."""

    def __init__(
        self,
        server_url: str,
        realm: str,
        client_id: str,
        client_secret: str,
        timeout: float = 10,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.server_url = server_url.rstrip('/')
        self.realm = realm
        self.client_id = client_id
        self.client_secret = client_secret
        self.timeout = timeout
        self.session = session or requests.Session()
        self._access_token: Optional[str] = None
        self._token_expires_at = 0.0

    # ------------------------------------------------------------------
    # Transport
    # ------------------------------------------------------------------

    @property
    def admin_url(self) -> str:
        return f"{self.server_url}/admin/realms/{self.realm}"

    @property
    def token_url(self) -> str:
        return f"{self.server_url}/realms/{self.realm}/protocol/openid-connect/token"

    def _send(self, method: str, url: str, **kwargs) -> requests.Response:
        try:
            resp = self.session.request(method, url, timeout=self.timeout, **kwargs)
        except (requests.ConnectionError, requests.Timeout) as e:
            raise AuthorityUnreachable(f"Cannot reach identity provider at {self.server_url}: {e}")
        except requests.RequestException as e:
            raise AuthorityError(f"Identity provider request failed: {e}")

        if resp.status_code >= 400:
            self._raise_for_status(method, url, resp)
        return resp

    def _raise_for_status(self, method: str, url: str, resp: requests.Response) -> None:
        status = resp.status_code
        logger.debug(f"Keycloak {method} {url} -> {status}: {resp.text[:500]}")

        if status in (401, 403):
            # A rejected token may simply have expired server-side
            self._access_token = None
            raise AuthorityForbidden(
                f"Identity provider refused {method} {url} ({status})", status=status
            )
        if status == 404:
            raise AuthorityNotFound(f"Identity provider has no resource at {url}", status=status)
        if status in _UNREACHABLE_STATUSES:
            raise AuthorityUnreachable(f"Identity provider unavailable ({status})", status=status)
        raise AuthorityError(f"Identity provider returned {status} for {method} {url}", status=status)

    def _token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        resp = self._send(
            'POST',
            self.token_url,
            data={
                'grant_type': 'client_credentials',
                'client_id': self.client_id,
                'client_secret': self.client_secret,
            },
        )
        payload = resp.json()
        self._access_token = payload['access_token']
        expires_in = int(payload.get('expires_in', 60))
        self._token_expires_at = time.monotonic() + max(expires_in - TOKEN_EXPIRY_MARGIN, 0)
        return self._access_token

    def _request(
        self,
        method: str,
        path: str,
        params: Optional[dict] = None,
        json_body: Any = None,
    ) -> requests.Response:
        headers = {'Authorization': f"Bearer {self._token()}"}
        return self._send(method, f"{self.admin_url}{path}", params=params, json=json_body, headers=headers)

    # ------------------------------------------------------------------
    # Representations
    # ------------------------------------------------------------------

    @staticmethod
    def _profile_from_representation(rep: dict) -> DirectoryProfile:
        return DirectoryProfile(
            external_id=rep.get('id'),
            email=rep.get('email') or '',
            first_name=rep.get('firstName') or '',
            last_name=rep.get('lastName') or '',
            enabled=rep.get('enabled', True),
        )

    def _role_representation(self, role_name: str) -> dict:
        return self._request('GET', f"/roles/{role_name}").json()

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    def create_account(self, profile: DirectoryProfile, password: str) -> str:
        logger.info(f"Creating user in Keycloak: {profile.email}")

        representation = {
            'username': profile.email,
            'email': profile.email,
            'firstName': profile.first_name,
            'lastName': profile.last_name,
            'enabled': True,
            'emailVerified': True,
            'credentials': [{
                'type': 'password',
                'value': password,
                'temporary': False,
            }],
        }
        resp = self._request('POST', '/users', json_body=representation)

        location = resp.headers.get('Location', '')
        external_id = location.rstrip('/').rsplit('/', 1)[-1]
        if not external_id:
            raise AuthorityError("Identity provider did not return the created account location")

        logger.info(f"Created Keycloak user with ID: {external_id}")
        return external_id

    def update_account(self, external_id: str, profile: DirectoryProfile) -> None:
        logger.info(f"Updating user in Keycloak: {external_id}")
        self._request('PUT', f"/users/{external_id}", json_body={
            'email': profile.email,
            'firstName': profile.first_name,
            'lastName': profile.last_name,
        })

    def delete_account(self, external_id: str) -> None:
        logger.info(f"Deleting user from Keycloak: {external_id}")
        self._request('DELETE', f"/users/{external_id}")

    def get_account(self, external_id: str) -> DirectoryProfile:
        rep = self._request('GET', f"/users/{external_id}").json()
        return self._profile_from_representation(rep)

    def find_by_email(self, email: str) -> Optional[DirectoryProfile]:
        users = self._request('GET', '/users', params={'email': email, 'exact': 'true'}).json()
        if not users:
            return None
        return self._profile_from_representation(users[0])

    # ------------------------------------------------------------------
    # Roles
    # ------------------------------------------------------------------

    def assign_role(self, external_id: str, role_name: str) -> None:
        logger.info(f"Assigning role {role_name} to user {external_id}")
        role = self._role_representation(role_name)
        self._request('POST', f"/users/{external_id}/role-mappings/realm", json_body=[role])

    def remove_role(self, external_id: str, role_name: str) -> None:
        logger.info(f"Removing role {role_name} from user {external_id}")
        role = self._role_representation(role_name)
        self._request('DELETE', f"/users/{external_id}/role-mappings/realm", json_body=[role])

    def list_effective_roles(self, external_id: str) -> Set[str]:
        roles = self._request('GET', f"/users/{external_id}/role-mappings/realm/composite").json()
        return {role['name'] for role in roles}

    def ensure_role(self, role_name: str, description: str = "") -> bool:
        # A missing realm answers 404 on the token endpoint, not a missing role
        self._token()
        try:
            self._role_representation(role_name)
            logger.debug(f"Role {role_name} already exists in Keycloak")
            return False
        except AuthorityNotFound:
            pass

        self._request('POST', '/roles', json_body={
            'name': role_name,
            'description': description,
            'composite': False,
            'clientRole': False,
        })
        logger.info(f"Created realm role {role_name} in Keycloak")
        return True

    def ping(self) -> None:
        self._request('GET', '')
