"""
Realm role bootstrap.

Makes sure the canonical roles exist in the identity provider. Safe to run
any number of times; the process entry point runs it once at startup.
"""
import logging
from dataclasses import dataclass, field
from typing import List, Optional

from apps.core.exceptions import AuthorityForbidden, AuthorityUnreachable
from .directory import IdentityDirectoryClient
from .models import ROLE_DESCRIPTIONS, Role

logger = logging.getLogger(__name__)


@dataclass
class BootstrapResult:
    ok: bool = True
    created: List[str] = field(default_factory=list)
    existing: List[str] = field(default_factory=list)
    error: Optional[str] = None


def initialize_realm_roles(directory: IdentityDirectoryClient) -> BootstrapResult:
    """
    Create the ADMIN and USER realm roles when missing.

    An unreachable provider or missing service permissions are logged and
    reported in the result instead of raised, so the application can start
    in reduced-functionality mode.
    """
    result = BootstrapResult()
    logger.info("Initializing identity provider realm roles")

    try:
        for role in Role:
            if directory.ensure_role(role.value, ROLE_DESCRIPTIONS[role]):
                result.created.append(role.value)
            else:
                result.existing.append(role.value)
    except AuthorityForbidden as e:
        result.ok = False
        result.error = f"Service account lacks realm-management permissions: {e}"
        logger.warning(f"Realm role bootstrap skipped. {result.error}")
    except AuthorityUnreachable as e:
        result.ok = False
        result.error = f"Identity provider unreachable: {e}"
        logger.warning(f"Realm role bootstrap skipped. {result.error}")
    else:
        logger.info(
            f"Realm roles ready (created: {result.created or 'none'}, "
            f"existing: {result.existing or 'none'})"
        )

    return result
