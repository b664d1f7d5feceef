"""
Check-in CRUD service.

Handles check-in storage, the visibility/notes updates a user may make
after submitting, and privacy-aware reads by other users.
"""

import logging
from datetime import datetime, timezone, timedelta
from typing import Optional, List, Dict, Any

from common.utils.exceptions import ForbiddenException, NotFoundException
from care_os.checkin.models import CheckIn, CheckInRequest
from care_os.checkin.services.visibility import can_view_checkin
from care_os.database.stores.base import CheckInStore, UserStore
from care_os.guardrails.services.audit_logger import AuditLogger
from care_os.user.services.privacy_service import PrivacyService

logger = logging.getLogger(__name__)


class CheckInService:
    """
    Handles check-in storage and retrieval.
    """

    MAX_LIMIT = 90
    HISTORY_DAYS = 90

    def __init__(
        self,
        checkin_store: CheckInStore,
        user_store: UserStore,
        privacy_service: PrivacyService,
        audit_logger: AuditLogger
    ):
        """
        Initialize CheckInService.

        Args:
            checkin_store: Check-in persistence
            user_store: For owner lookups on reads by other users
            privacy_service: Source of the default visibility
            audit_logger: Records reads of another user's check-ins
        """
        self._checkin_store = checkin_store
        self._user_store = user_store
        self._privacy_service = privacy_service
        self._audit_logger = audit_logger

    async def submit_checkin(self, user_id: str, data: CheckInRequest) -> CheckIn:
        """
        Create or update today's check-in for a user.

        Args:
            user_id: Submitting user
            data: Validated check-in values

        Returns:
            Saved check-in
        """
        now = datetime.now(timezone.utc)
        today = now.strftime("%Y-%m-%d")

        visibility = data.visibility
        if visibility is None:
            privacy = await self._privacy_service.get_settings(user_id)
            visibility = privacy.checkinVisibility

        fields = {
            "timestamp": now,
            "moodScore": data.moodScore,
            "workloadLevel": data.workloadLevel,
            "energyLevel": data.energyLevel,
            "stressLevel": data.stressLevel,
            "notes": data.notes.strip() if data.notes else None,
            "visibility": getattr(visibility, "value", visibility),
        }

        record = await self._checkin_store.upsert_for_day(user_id, today, fields)

        logger.info(f"Check-in submitted for user {user_id} on {today}")
        return CheckIn(**record)

    async def update_checkin(
        self,
        checkin_id: str,
        user_id: str,
        visibility: Optional[str] = None,
        notes: Optional[str] = None
    ) -> CheckIn:
        """
        Update the mutable fields of a check-in.

        Raises:
            NotFoundException: Unknown check-in
            ForbiddenException: Caller does not own the check-in
        """
        record = await self._checkin_store.get_by_id(checkin_id)
        if not record:
            raise NotFoundException(message="Check-in not found", code="CHECKIN_NOT_FOUND")

        if record["userId"] != user_id:
            raise ForbiddenException(
                message="Only the owner can update a check-in",
                code="CHECKIN_FORBIDDEN"
            )

        fields: Dict[str, Any] = {}
        if visibility is not None:
            fields["visibility"] = getattr(visibility, "value", visibility)
        if notes is not None:
            fields["notes"] = notes.strip() or None

        if not fields:
            return CheckIn(**record)

        updated = await self._checkin_store.update_fields(checkin_id, fields)
        if not updated:
            raise NotFoundException(message="Check-in not found", code="CHECKIN_NOT_FOUND")

        logger.info(f"Check-in {checkin_id} updated: {sorted(fields)}")
        return CheckIn(**updated)

    async def get_visible_checkins(
        self,
        target_user_id: str,
        accessor: Dict[str, Any],
        limit: int = 30
    ) -> List[CheckIn]:
        """
        Get a user's check-ins as seen by the accessor, newest first.

        Reads of another user's data are audited whether or not anything
        was visible.

        Args:
            target_user_id: Whose check-ins
            accessor: User asking (needs "id" and "role")
            limit: Max records (capped at 90)

        Returns:
            Check-ins the accessor may see

        Raises:
            NotFoundException: Unknown target user
        """
        owner = await self._user_store.get_user(target_user_id)
        if not owner:
            raise NotFoundException(message="User not found", code="USER_NOT_FOUND")

        since = datetime.now(timezone.utc) - timedelta(days=self.HISTORY_DAYS)
        records = await self._checkin_store.get_recent(
            target_user_id, since, limit=min(limit, self.MAX_LIMIT)
        )

        visible = [r for r in records if can_view_checkin(r, owner, accessor)]

        if accessor["id"] != target_user_id:
            await self._audit_logger.record_data_access(
                accessor["id"],
                target_user_id,
                "checkins",
                granted=bool(visible)
            )

        return [CheckIn(**r) for r in visible]
