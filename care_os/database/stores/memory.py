"""
In-memory storage backend.

Used for demo mode and tests. Records live in plain dicts inside the
process; every method returns copies so callers cannot mutate stored state.
"""

import copy
import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from bson import ObjectId

from care_os.database.stores.base import (
    CheckInStore,
    DeviationStore,
    UserStore,
    AuditStore,
    InsightStore,
)

logger = logging.getLogger(__name__)


def _new_id() -> str:
    return str(ObjectId())


class MemoryCheckInStore(CheckInStore):

    def __init__(self):
        self._checkins: Dict[str, Dict[str, Any]] = {}

    def add(self, checkin: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a raw record as-is (seeding and backfills)."""
        record = copy.deepcopy(checkin)
        record.setdefault("id", _new_id())
        self._checkins[record["id"]] = record
        return copy.deepcopy(record)

    async def upsert_for_day(
        self,
        user_id: str,
        date: str,
        fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        for record in self._checkins.values():
            if record["userId"] == user_id and record.get("date") == date:
                record.update(copy.deepcopy(fields))
                return copy.deepcopy(record)

        record = {**copy.deepcopy(fields), "id": _new_id(), "userId": user_id, "date": date}
        self._checkins[record["id"]] = record
        return copy.deepcopy(record)

    async def get_by_id(self, checkin_id: str) -> Optional[Dict[str, Any]]:
        record = self._checkins.get(checkin_id)
        return copy.deepcopy(record) if record else None

    async def update_fields(
        self,
        checkin_id: str,
        fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        record = self._checkins.get(checkin_id)
        if record is None:
            return None
        record.update(copy.deepcopy(fields))
        return copy.deepcopy(record)

    async def get_recent(
        self,
        user_id: str,
        since: datetime,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        records = [
            r for r in self._checkins.values()
            if r["userId"] == user_id and r["timestamp"] >= since
        ]
        records.sort(key=lambda r: r["timestamp"], reverse=True)
        return copy.deepcopy(records[:limit])

    async def get_latest(self, user_id: str) -> Optional[Dict[str, Any]]:
        records = [r for r in self._checkins.values() if r["userId"] == user_id]
        if not records:
            return None
        return copy.deepcopy(max(records, key=lambda r: r["timestamp"]))

    async def get_in_range(
        self,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        records = [
            r for r in self._checkins.values()
            if start <= r["timestamp"] <= end
            and (user_id is None or r["userId"] == user_id)
        ]
        records.sort(key=lambda r: r["timestamp"])
        return copy.deepcopy(records)


class MemoryDeviationStore(DeviationStore):

    def __init__(self):
        self._deviations: Dict[str, Dict[str, Any]] = {}

    def add(self, deviation: Dict[str, Any]) -> Dict[str, Any]:
        """Insert a raw record without the duplicate check (seeding)."""
        record = copy.deepcopy(deviation)
        record.setdefault("id", _new_id())
        self._deviations[record["id"]] = record
        return copy.deepcopy(record)

    async def insert_if_absent(
        self,
        deviation: Dict[str, Any],
        window_start: datetime
    ) -> Optional[Dict[str, Any]]:
        # No await between the check and the insert: atomic on the event loop.
        for record in self._deviations.values():
            if (
                record["userId"] == deviation["userId"]
                and record["type"] == deviation["type"]
                and not record.get("resolved")
                and record["detectedAt"] >= window_start
            ):
                return None

        return self.add(deviation)

    async def get_by_id(self, deviation_id: str) -> Optional[Dict[str, Any]]:
        record = self._deviations.get(deviation_id)
        return copy.deepcopy(record) if record else None

    async def list_pending(self) -> List[Dict[str, Any]]:
        records = [
            r for r in self._deviations.values()
            if not r.get("managerNotified") and not r.get("resolved")
        ]
        records.sort(key=lambda r: r["detectedAt"])
        return copy.deepcopy(records)

    async def mark_notified(self, deviation_id: str, notified_at: datetime) -> bool:
        record = self._deviations.get(deviation_id)
        if record is None:
            return False
        record["managerNotified"] = True
        record["notifiedAt"] = notified_at
        return True

    async def mark_resolved(
        self,
        deviation_id: str,
        resolved_by: str,
        resolved_at: datetime,
        notes: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        record = self._deviations.get(deviation_id)
        if record is None:
            return None
        record["resolved"] = True
        record["resolvedBy"] = resolved_by
        record["resolvedAt"] = resolved_at
        if notes:
            record["resolutionNotes"] = notes
        return copy.deepcopy(record)

    async def list_for_users(
        self,
        user_ids: List[str],
        resolved: Optional[bool] = None,
        severity: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        wanted = set(user_ids)
        records = [
            r for r in self._deviations.values()
            if r["userId"] in wanted
            and (resolved is None or bool(r.get("resolved")) == resolved)
            and (severity is None or r["severity"] == severity)
            and (since is None or r["detectedAt"] >= since)
        ]
        records.sort(key=lambda r: r["detectedAt"], reverse=True)
        return copy.deepcopy(records[:limit])


class MemoryUserStore(UserStore):

    def __init__(self):
        self._users: Dict[str, Dict[str, Any]] = {}
        self._privacy: Dict[str, Dict[str, Any]] = {}

    def add_user(
        self,
        user: Dict[str, Any],
        privacy: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        record = copy.deepcopy(user)
        record.setdefault("id", _new_id())
        record.setdefault("role", "EMPLOYEE")
        self._users[record["id"]] = record
        if privacy is not None:
            self._privacy[record["id"]] = copy.deepcopy(privacy)
        return copy.deepcopy(record)

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        record = self._users.get(user_id)
        return copy.deepcopy(record) if record else None

    async def list_employee_ids(self) -> List[str]:
        return [uid for uid, u in self._users.items() if u.get("role") == "EMPLOYEE"]

    async def list_direct_report_ids(self, manager_id: str) -> List[str]:
        return [uid for uid, u in self._users.items() if u.get("managerId") == manager_id]

    async def get_privacy_settings(self, user_id: str) -> Optional[Dict[str, Any]]:
        settings = self._privacy.get(user_id)
        return copy.deepcopy(settings) if settings else None


class MemoryAuditStore(AuditStore):

    def __init__(self):
        self.entries: List[Dict[str, Any]] = []

    async def append(self, entry: Dict[str, Any]) -> None:
        record = copy.deepcopy(entry)
        record.setdefault("id", _new_id())
        self.entries.append(record)


class MemoryInsightStore(InsightStore):

    def __init__(self):
        self._insights: Dict[str, Dict[str, Any]] = {}

    async def insert(self, insight: Dict[str, Any]) -> Dict[str, Any]:
        record = copy.deepcopy(insight)
        record["id"] = record.get("id") or _new_id()
        self._insights[record["id"]] = record
        return copy.deepcopy(record)

    async def get_by_id(self, insight_id: str) -> Optional[Dict[str, Any]]:
        record = self._insights.get(insight_id)
        return copy.deepcopy(record) if record else None

    async def mark_reviewed(
        self,
        insight_id: str,
        reviewed_by: str,
        reviewed_at: datetime,
        action_taken: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        record = self._insights.get(insight_id)
        if record is None:
            return None
        record["humanReviewed"] = True
        record["reviewedBy"] = reviewed_by
        record["reviewedAt"] = reviewed_at
        record["actionTaken"] = action_taken
        return copy.deepcopy(record)
