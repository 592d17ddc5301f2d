"""
JWT Authentication utilities.

Access tokens are issued by the identity provider. In production they are
RS256 tokens verified against the provider's JWKS endpoint; in development
and tests HS256 tokens signed with JWT_SECRET are accepted (see
create_access_token).
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import List, Optional

import jwt
from django.conf import settings
from django.http import HttpRequest

logger = logging.getLogger(__name__)

ACCESS_TOKEN_EXPIRE_MINUTES = 15

_jwks_client: Optional[jwt.PyJWKClient] = None


@dataclass(frozen=True)
class Principal:
    """The authenticated caller as described by its access token."""
    subject: str
    email: Optional[str] = None
    roles: List[str] = field(default_factory=list)


def _get_jwks_client() -> jwt.PyJWKClient:
    global _jwks_client
    if _jwks_client is None:
        _jwks_client = jwt.PyJWKClient(settings.KEYCLOAK_JWKS_URL)
    return _jwks_client


def _verification_key(token: str):
    if settings.JWT_ALGORITHM == 'HS256':
        return settings.JWT_SECRET
    return _get_jwks_client().get_signing_key_from_jwt(token).key


def decode_token(token: str) -> Optional[dict]:
    """
    Decode and validate a JWT token.

    Returns:
        Decoded payload if valid, None if invalid/expired.
    """
    audience = settings.JWT_AUDIENCE or None
    try:
        return jwt.decode(
            token,
            _verification_key(token),
            algorithms=[settings.JWT_ALGORITHM],
            audience=audience,
            options={'verify_aud': audience is not None},
        )
    except jwt.ExpiredSignatureError:
        return None
    except jwt.PyJWKClientError as e:
        logger.warning(f"Could not fetch signing key: {e}")
        return None
    except jwt.InvalidTokenError:
        return None


def principal_from_claims(claims: dict) -> Principal:
    """Build the caller from token claims; roles come from realm_access.roles."""
    realm_access = claims.get('realm_access') or {}
    return Principal(
        subject=claims['sub'],
        email=claims.get('email'),
        roles=list(realm_access.get('roles', [])),
    )


def get_principal(request: HttpRequest) -> Optional[Principal]:
    """Extract and validate the caller from the Authorization header."""
    header = request.headers.get('Authorization', '')
    scheme, _, token = header.partition(' ')
    if scheme.lower() != 'bearer' or not token:
        return None

    claims = decode_token(token.strip())
    if not claims or 'sub' not in claims:
        return None
    return principal_from_claims(claims)


def create_access_token(subject: str, email: Optional[str] = None, roles: Optional[List[str]] = None) -> str:
    """
    Create a short-lived HS256 access token shaped like a Keycloak token.

    For development and tests only; production tokens come from the
    identity provider.
    """
    now = datetime.now(timezone.utc)
    payload = {
        'sub': subject,
        'email': email,
        'realm_access': {'roles': list(roles or [])},
        'exp': now + timedelta(minutes=ACCESS_TOKEN_EXPIRE_MINUTES),
        'iat': now,
    }
    if settings.JWT_AUDIENCE:
        payload['aud'] = settings.JWT_AUDIENCE
    return jwt.encode(payload, settings.JWT_SECRET, algorithm='HS256')
