from __future__ import annotations

import logging
from typing import Dict, Iterable

from domain.errors import NotFound
from domain.models import GUEST_ID_PREFIX
from domain.repositories import IdentityResolver

LOGGER = logging.getLogger(__name__)


def resolve_display_name(resolver: IdentityResolver, user_id: str) -> str:
    """Display name for `user_id`, or the raw id when the provider does not know it."""

    if user_id.startswith(GUEST_ID_PREFIX):
        return user_id
    try:
        profile = resolver.resolve(user_id)
    except NotFound:
        LOGGER.debug("No profile for %s, falling back to the raw id", user_id)
        return user_id
    return profile.display_name or profile.email or user_id


def resolve_display_names(resolver: IdentityResolver, user_ids: Iterable[str]) -> Dict[str, str]:
    """Resolve each distinct id once. Callers own any caching across calls."""

    names: Dict[str, str] = {}
    for user_id in user_ids:
        if user_id and user_id not in names:
            names[user_id] = resolve_display_name(resolver, user_id)
    return names
