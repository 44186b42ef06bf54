"""
Session Service

Resolves the acting user's role from the profiles table into a UserContext.
Authentication itself happens elsewhere; this only turns a known user id
into the capability object the flows pass around.
"""

from typing import Optional
from uuid import UUID

import structlog

from sitebooks.models.records import UserContext, UserRole
from sitebooks.services.storage import PROFILES, TableStoreInterface


logger = structlog.get_logger(__name__)


class SessionService:
    """Builds UserContext objects from stored profiles."""

    def __init__(self, store: TableStoreInterface):
        self._store = store

    async def get_user_context(self, user_id: UUID) -> UserContext:
        """
        Look up the user's role.

        A user without a profile, or with a role we don't know, gets a
        context with no role: they can record transfers but not delete them.
        """
        profile = await self._store.get(PROFILES, user_id)
        return UserContext(user_id=user_id, role=self._parse_role(profile))

    @staticmethod
    def _parse_role(profile: Optional[dict]) -> Optional[UserRole]:
        if not profile or not profile.get("role"):
            return None
        try:
            return UserRole(profile["role"].strip().lower())
        except ValueError:
            logger.warning("unknown_user_role", role=profile["role"])
            return None
