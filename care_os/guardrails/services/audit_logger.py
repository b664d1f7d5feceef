"""
Audit logger.

Append-only record of every AI recommendation, guardrail block and
privacy-sensitive data access. Audit failures are logged and swallowed.
"""

import logging
from typing import Optional, List, Dict, Any

from care_os.database.stores.base import AuditStore
from care_os.guardrails.models import AuditLogEntry

logger = logging.getLogger(__name__)


class AuditLogger:
    """
    Writes audit entries to the audit store.
    """

    AI_RECOMMENDATION = "AI_RECOMMENDATION"
    DATA_ACCESS = "DATA_ACCESS"
    GUARDRAIL_BLOCK = "GUARDRAIL_BLOCK"
    INSIGHT_REVIEWED = "INSIGHT_REVIEWED"

    def __init__(self, audit_store: AuditStore, log_level: str = "normal"):
        """
        Initialize AuditLogger.

        Args:
            audit_store: Append-only audit store
            log_level: "verbose" also logs every entry locally at INFO,
                "silent" drops store failures to DEBUG
        """
        self._audit_store = audit_store
        self._verbose = log_level == "verbose"
        self._silent = log_level == "silent"

    async def record(self, entry: AuditLogEntry) -> None:
        """
        Append an entry. Never raises.

        Args:
            entry: Audit entry to persist
        """
        try:
            await self._audit_store.append(entry.model_dump())

            if self._verbose:
                logger.info(f"Audit log entry created: {entry.action} {entry.resource}")
        except Exception as e:
            message = f"Failed to create audit log ({entry.action} {entry.resource}): {e}"
            if self._silent:
                logger.debug(message)
            else:
                logger.error(message)

    async def record_ai_recommendation(
        self,
        user_id: Optional[str],
        recommendation_type: str,
        input_data: Dict[str, Any],
        output_data: Dict[str, Any]
    ) -> None:
        """Record an AI recommendation; the advisory flag is always enforced."""
        await self.record(AuditLogEntry(
            userId=user_id,
            action=self.AI_RECOMMENDATION,
            resource=f"ai:{recommendation_type}",
            details={
                "type": recommendation_type,
                "input": input_data,
                "output": output_data,
                "wasAdvisoryFlagEnforced": True,
            },
        ))

    async def record_data_access(
        self,
        accessor_id: str,
        target_user_id: str,
        data_type: str,
        granted: bool
    ) -> None:
        """Record an attempt to read another user's data."""
        await self.record(AuditLogEntry(
            userId=accessor_id,
            action=self.DATA_ACCESS,
            resource=f"user:{target_user_id}:{data_type}",
            details={
                "accessorId": accessor_id,
                "targetUserId": target_user_id,
                "dataType": data_type,
                "granted": granted,
            },
        ))

    async def record_guardrail_block(
        self,
        user_id: Optional[str],
        source: str,
        categories: List[str]
    ) -> None:
        """Record a blocking-mode rejection."""
        await self.record(AuditLogEntry(
            userId=user_id,
            action=self.GUARDRAIL_BLOCK,
            resource=f"guardrail:{source}",
            details={"categories": categories},
        ))

    async def record_insight_review(
        self,
        reviewer_id: str,
        insight_id: str,
        action_taken: Optional[str]
    ) -> None:
        await self.record(AuditLogEntry(
            userId=reviewer_id,
            action=self.INSIGHT_REVIEWED,
            resource=f"insight:{insight_id}",
            details={"actionTaken": action_taken},
        ))
