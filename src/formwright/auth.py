"""API key authentication for management operations."""

import logging
from dataclasses import dataclass
from typing import Optional

from .config import Config
from .errors import AuthorizationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class Principal:
    """The owner on whose behalf a management request runs."""

    owner: str


def get_current_user(api_key: Optional[str], config: Config) -> Optional[Principal]:
    owner = config.owner_for_api_key(api_key)
    if owner is None:
        if api_key:
            logger.info(f"Rejected unknown API key {api_key[:2]}***")
        return None
    return Principal(owner=owner)


def require_user(api_key: Optional[str], config: Config) -> Principal:
    principal = get_current_user(api_key, config)
    if principal is None:
        raise AuthorizationError("Missing or invalid API key")
    return principal
