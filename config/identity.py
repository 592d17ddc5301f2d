"""
Identity provider configuration.

The backend talks to a Keycloak realm twice:
- as a confidential client (client credentials) for the admin REST API
- as a resource server, verifying the Bearer tokens users present
"""
import os


def _as_bool(value: str) -> bool:
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def get_identity_settings() -> dict:
    """
    Returns identity-related settings based on environment configuration.

    JWT verification uses the realm JWKS when KEYCLOAK_JWKS_URL is set
    (RS256). Without it, tokens are verified with JWT_SECRET (HS256), which is
    only meant for local development and tests.
    """
    server_url = os.getenv('KEYCLOAK_SERVER_URL', 'http://localhost:8180').rstrip('/')
    realm = os.getenv('KEYCLOAK_REALM', 'gestion-projet')

    jwks_url = os.getenv('KEYCLOAK_JWKS_URL', '')
    algorithm = os.getenv('JWT_ALGORITHM', 'RS256' if jwks_url else 'HS256')

    return {
        'KEYCLOAK_SERVER_URL': server_url,
        'KEYCLOAK_REALM': realm,
        'KEYCLOAK_CLIENT_ID': os.getenv('KEYCLOAK_CLIENT_ID', 'backend-api'),
        'KEYCLOAK_CLIENT_SECRET': os.getenv('KEYCLOAK_CLIENT_SECRET', ''),
        'KEYCLOAK_TIMEOUT': float(os.getenv('KEYCLOAK_TIMEOUT', '10')),
        'KEYCLOAK_JWKS_URL': jwks_url,
        'JWT_ALGORITHM': algorithm,
        'JWT_AUDIENCE': os.getenv('JWT_AUDIENCE') or None,
        'IDENTITY_BOOTSTRAP_ON_STARTUP': _as_bool(os.getenv('IDENTITY_BOOTSTRAP_ON_STARTUP', 'true')),
    }
