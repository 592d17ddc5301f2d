"""
ASGI config for the project management backend.

Runs the identity realm bootstrap once at process start, then serves the
Django application. Also exposes a Mangum handler for AWS Lambda.
"""
import logging
import os

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'config.settings')

from django.core.asgi import get_asgi_application

# Initialize Django application at module load time (container startup)
application = get_asgi_application()

logger = logging.getLogger(__name__)


# =============================================================================
# Startup
# =============================================================================

def bootstrap_identity():
    """
    Ensure the realm roles exist before serving requests.

    Never fails startup: an unreachable or misconfigured identity provider
    leaves the application running in reduced-functionality mode.
    """
    from django.conf import settings
    from apps.core.exceptions import AuthorityError
    from apps.identity.bootstrap import BootstrapResult, initialize_realm_roles
    from apps.identity.directory import get_directory_client

    if not settings.IDENTITY_BOOTSTRAP_ON_STARTUP:
        logger.info("Identity bootstrap disabled")
        return None

    try:
        result = initialize_realm_roles(get_directory_client())
    except AuthorityError as e:
        logger.error(f"Identity bootstrap failed: {e}")
        result = BootstrapResult(ok=False, error=str(e))

    if not result.ok:
        logger.warning(f"Starting in reduced-functionality mode: {result.error}")
    return result


bootstrap_identity()


# =============================================================================
# Lambda Handler (via Mangum)
# =============================================================================

def get_lambda_handler():
    """
    Returns a Mangum-wrapped handler for AWS Lambda.

    Lazy initialization to avoid import errors when mangum isn't installed
    (e.g., in local development without Lambda dependencies).
    """
    try:
        from mangum import Mangum
        return Mangum(application, lifespan="off")
    except ImportError:
        raise ImportError(
            "Mangum is required for Lambda deployment. "
            "Install with: pip install mangum"
        )


_lambda_handler = None

def lambda_handler(event, context):
    """
    AWS Lambda entry point for HTTP requests.
    """
    global _lambda_handler
    if _lambda_handler is None:
        _lambda_handler = get_lambda_handler()
    return _lambda_handler(event, context)
