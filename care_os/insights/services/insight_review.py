"""
Human review of advisory insights.
"""

import logging
from datetime import datetime, timezone
from typing import Optional

from common.utils.exceptions import NotFoundException
from care_os.database.stores.base import InsightStore
from care_os.guardrails.services.advisory_enforcer import AdvisoryEnforcer
from care_os.guardrails.services.audit_logger import AuditLogger
from care_os.guardrails.services.policy_filter import PolicyFilter
from care_os.insights.models import InsightResponse

logger = logging.getLogger(__name__)


class InsightReviewService:
    """
    Records that a human reviewed an insight and what they did about it.
    """

    def __init__(
        self,
        insight_store: InsightStore,
        policy_filter: PolicyFilter,
        advisory_enforcer: AdvisoryEnforcer,
        audit_logger: AuditLogger
    ):
        """
        Initialize InsightReviewService.

        Args:
            insight_store: Insight persistence
            policy_filter: Blocking scan of the recorded action
            advisory_enforcer: Re-stamps the returned insight
            audit_logger: Records the review
        """
        self._insight_store = insight_store
        self._policy_filter = policy_filter
        self._advisory_enforcer = advisory_enforcer
        self._audit_logger = audit_logger

    async def mark_reviewed(
        self,
        insight_id: str,
        reviewer_id: str,
        action_taken: Optional[str] = None
    ) -> InsightResponse:
        """
        Mark an insight as reviewed.

        Args:
            insight_id: Insight to mark
            reviewer_id: Human who reviewed it
            action_taken: Free-text description of the follow-up

        Returns:
            Updated insight

        Raises:
            GuardrailViolationError: Action text contains prohibited language
            NotFoundException: Unknown insight
        """
        if action_taken:
            self._policy_filter.enforce(action_taken, source="insight review")

        updated = await self._insight_store.mark_reviewed(
            insight_id,
            reviewed_by=reviewer_id,
            reviewed_at=datetime.now(timezone.utc),
            action_taken=action_taken
        )
        if not updated:
            raise NotFoundException(message="Insight not found", code="INSIGHT_NOT_FOUND")

        await self._audit_logger.record_insight_review(reviewer_id, insight_id, action_taken)

        logger.info(f"Insight {insight_id} reviewed by {reviewer_id}")
        return self._advisory_enforcer.enforce(InsightResponse(**updated))
