"""
Privacy settings lookups.

Answers the one question the analysis pipeline asks before touching a
user's data: has this user opted in to AI analysis?
"""

import logging
from typing import Optional, Dict, Iterable, Set

from care_os.database.stores.base import UserStore
from care_os.user.models import PrivacySettings

logger = logging.getLogger(__name__)


class PrivacyService:
    """
    Reads per-user privacy settings from the user store.
    """

    def __init__(self, user_store: UserStore):
        """
        Initialize PrivacyService.

        Args:
            user_store: Source of users and privacy settings
        """
        self._user_store = user_store

    async def get_settings(self, user_id: str) -> PrivacySettings:
        """
        Get a user's privacy settings.

        Missing settings mean the defaults, which do not opt in.
        """
        raw: Optional[Dict] = await self._user_store.get_privacy_settings(user_id)
        return PrivacySettings(**(raw or {}))

    async def allows_ai_analysis(self, user_id: str) -> bool:
        settings = await self.get_settings(user_id)
        return settings.allowAiAnalysis

    async def filter_opted_in(self, user_ids: Iterable[str]) -> Set[str]:
        """Return the subset of user ids that allow AI analysis."""
        allowed = set()
        for user_id in set(user_ids):
            if await self.allows_ai_analysis(user_id):
                allowed.add(user_id)
        return allowed
