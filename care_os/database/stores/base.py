"""
Abstract storage interfaces.

Defines the contract every storage backend must implement. The backend is
chosen once at startup (MongoDB or in-memory) and handed to the services,
so no call site branches on which one is active.

Stores speak in plain dicts using the camelCase field names of the
pydantic models, with string ``id`` / ``userId`` values.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional, List, Dict, Any


class CheckInStore(ABC):
    """Check-in persistence."""

    @abstractmethod
    async def upsert_for_day(
        self,
        user_id: str,
        date: str,
        fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        """
        Create or replace the user's check-in for a calendar day.

        Args:
            user_id: Owner of the check-in
            date: YYYY-MM-DD key
            fields: Check-in fields to store

        Returns:
            Stored check-in
        """
        pass

    @abstractmethod
    async def get_by_id(self, checkin_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def update_fields(
        self,
        checkin_id: str,
        fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """Update mutable fields, returning the updated record or None."""
        pass

    @abstractmethod
    async def get_recent(
        self,
        user_id: str,
        since: datetime,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        """
        Get a user's check-ins at or after ``since``.

        Returns:
            Check-ins ordered newest first
        """
        pass

    @abstractmethod
    async def get_latest(self, user_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def get_in_range(
        self,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """Get check-ins with start <= timestamp <= end, oldest first."""
        pass


class DeviationStore(ABC):
    """Deviation persistence."""

    @abstractmethod
    async def insert_if_absent(
        self,
        deviation: Dict[str, Any],
        window_start: datetime
    ) -> Optional[Dict[str, Any]]:
        """
        Atomically insert a deviation unless a duplicate is open.

        A duplicate is an unresolved deviation with the same userId and
        type detected at or after ``window_start``. Concurrent callers for
        the same (userId, type) must never both insert.

        Returns:
            The stored deviation, or None when suppressed
        """
        pass

    @abstractmethod
    async def get_by_id(self, deviation_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def list_pending(self) -> List[Dict[str, Any]]:
        """Deviations with managerNotified == False and resolved == False."""
        pass

    @abstractmethod
    async def mark_notified(self, deviation_id: str, notified_at: datetime) -> bool:
        pass

    @abstractmethod
    async def mark_resolved(
        self,
        deviation_id: str,
        resolved_by: str,
        resolved_at: datetime,
        notes: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def list_for_users(
        self,
        user_ids: List[str],
        resolved: Optional[bool] = None,
        severity: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        """Deviations for the given users, newest first."""
        pass


class UserStore(ABC):
    """Read-only access to users and their privacy settings."""

    @abstractmethod
    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def list_employee_ids(self) -> List[str]:
        pass

    @abstractmethod
    async def list_direct_report_ids(self, manager_id: str) -> List[str]:
        pass

    @abstractmethod
    async def get_privacy_settings(self, user_id: str) -> Optional[Dict[str, Any]]:
        pass

    async def get_manager(self, user_id: str) -> Optional[Dict[str, Any]]:
        """Resolve the manager of a user, or None."""
        user = await self.get_user(user_id)
        if not user or not user.get("managerId"):
            return None
        return await self.get_user(user["managerId"])


class AuditStore(ABC):
    """Append-only audit log."""

    @abstractmethod
    async def append(self, entry: Dict[str, Any]) -> None:
        pass


class InsightStore(ABC):
    """Insight persistence."""

    @abstractmethod
    async def insert(self, insight: Dict[str, Any]) -> Dict[str, Any]:
        pass

    @abstractmethod
    async def get_by_id(self, insight_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    async def mark_reviewed(
        self,
        insight_id: str,
        reviewed_by: str,
        reviewed_at: datetime,
        action_taken: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        pass
