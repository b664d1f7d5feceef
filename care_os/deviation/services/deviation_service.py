"""
Deviation management service.

Manager-facing reads and the resolve action. Every payload handed to a
manager carries the advisory markers.
"""

import logging
from datetime import datetime, timezone, timedelta
from typing import Optional, List, Dict, Any

from common.utils.exceptions import NotFoundException
from care_os.database.stores.base import DeviationStore, UserStore
from care_os.deviation.models import Deviation, DeviationSeverity
from care_os.guardrails.services.advisory_enforcer import AdvisoryEnforcer

logger = logging.getLogger(__name__)


class DeviationService:
    """
    Lists, resolves and summarizes deviations for a manager's team.
    """

    STATISTICS_WINDOW_DAYS = 30
    MAX_LIMIT = 200

    def __init__(
        self,
        deviation_store: DeviationStore,
        user_store: UserStore,
        advisory_enforcer: AdvisoryEnforcer
    ):
        """
        Initialize DeviationService.

        Args:
            deviation_store: Deviation persistence
            user_store: For direct-report lookups
            advisory_enforcer: Stamps manager-facing payloads
        """
        self._deviation_store = deviation_store
        self._user_store = user_store
        self._advisory_enforcer = advisory_enforcer

    async def list_for_manager(
        self,
        manager_id: str,
        resolved: Optional[bool] = None,
        severity: Optional[str] = None,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        """
        Get deviations for a manager's direct reports, newest first.

        Returns:
            Deviation dicts, each advisory-stamped
        """
        report_ids = await self._user_store.list_direct_report_ids(manager_id)
        if not report_ids:
            return []

        records = await self._deviation_store.list_for_users(
            report_ids,
            resolved=resolved,
            severity=severity,
            limit=min(limit, self.MAX_LIMIT)
        )

        return [
            self._advisory_enforcer.stamp_payload(Deviation(**record).model_dump(mode="json"))
            for record in records
        ]

    async def resolve(
        self,
        deviation_id: str,
        manager_id: str,
        notes: Optional[str] = None
    ) -> Deviation:
        """
        Mark a deviation resolved.

        Only the affected user's manager may resolve it. Resolution is a
        one-way state change; nothing is deleted.

        Raises:
            NotFoundException: Unknown deviation or caller is not the manager
        """
        record = await self._deviation_store.get_by_id(deviation_id)
        if not record:
            raise NotFoundException(message="Deviation not found", code="DEVIATION_NOT_FOUND")

        user = await self._user_store.get_user(record["userId"])
        if not user or user.get("managerId") != manager_id:
            # Not this manager's report: reported exactly like a missing id
            raise NotFoundException(message="Deviation not found", code="DEVIATION_NOT_FOUND")

        updated = await self._deviation_store.mark_resolved(
            deviation_id,
            resolved_by=manager_id,
            resolved_at=datetime.now(timezone.utc),
            notes=notes
        )
        if not updated:
            raise NotFoundException(message="Deviation not found", code="DEVIATION_NOT_FOUND")

        logger.info(f"Deviation {deviation_id} resolved by manager {manager_id}")
        return Deviation(**updated)

    async def get_statistics(self, manager_id: str) -> Dict[str, Any]:
        """
        Counts of the team's deviations over the last 30 days.
        """
        report_ids = await self._user_store.list_direct_report_ids(manager_id)
        since = datetime.now(timezone.utc) - timedelta(days=self.STATISTICS_WINDOW_DAYS)

        records = []
        if report_ids:
            records = await self._deviation_store.list_for_users(
                report_ids, since=since, limit=10000
            )

        by_severity = {severity.value: 0 for severity in DeviationSeverity}
        for record in records:
            by_severity[record["severity"]] = by_severity.get(record["severity"], 0) + 1

        return self._advisory_enforcer.stamp_payload({
            "totalDeviations": len(records),
            "unresolved": sum(1 for r in records if not r.get("resolved")),
            "bySeverity": by_severity,
            "windowDays": self.STATISTICS_WINDOW_DAYS,
        })
