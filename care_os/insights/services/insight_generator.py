"""
Advisory insight generator.

Produces team wellbeing insights from check-in data. Every insight passes
the content policy filter on the way in and on the way out, is stamped
advisory-only, and is written to the audit log.
"""

import logging
from typing import Optional, List, Dict, Any

from common.utils.exceptions import GuardrailViolationError
from care_os.database.stores.base import CheckInStore, InsightStore
from care_os.guardrails.services.advisory_enforcer import AdvisoryEnforcer
from care_os.guardrails.services.audit_logger import AuditLogger
from care_os.guardrails.services.policy_filter import PolicyFilter
from care_os.insights.models import InsightRequest, InsightResponse, InsightMetadata
from care_os.insights.services.analyzers import InsightAnalyzer, StatisticalAnalyzer
from care_os.user.services.privacy_service import PrivacyService

logger = logging.getLogger(__name__)


class InsightGenerator:
    """
    Generates advisory-only insights on demand.
    """

    RECOMMENDATIONS = [
        "Consider scheduling 1:1 check-ins with team members showing consistent workload stress",
        "Review team capacity and consider redistributing tasks if workload patterns persist",
        "Encourage use of wellbeing resources and ensure team is aware of support available",
    ]

    def __init__(
        self,
        checkin_store: CheckInStore,
        insight_store: InsightStore,
        privacy_service: PrivacyService,
        policy_filter: PolicyFilter,
        advisory_enforcer: AdvisoryEnforcer,
        audit_logger: AuditLogger,
        analyzer: Optional[InsightAnalyzer] = None
    ):
        """
        Initialize InsightGenerator.

        Args:
            checkin_store: Source of check-in data
            insight_store: Where generated insights are kept for review
            privacy_service: For the AI-analysis opt-in filter
            policy_filter: Blocking scan of requests and outputs
            advisory_enforcer: Forces the advisory flag on every response
            audit_logger: Records recommendations and guardrail blocks
            analyzer: Observation producer (default StatisticalAnalyzer)
        """
        self._checkin_store = checkin_store
        self._insight_store = insight_store
        self._privacy_service = privacy_service
        self._policy_filter = policy_filter
        self._advisory_enforcer = advisory_enforcer
        self._audit_logger = audit_logger
        self._analyzer = analyzer or StatisticalAnalyzer()

    async def generate(self, request: InsightRequest) -> InsightResponse:
        """
        Generate an advisory insight for a time range.

        Args:
            request: Insight type, time range and optional user scope

        Returns:
            InsightResponse with metadata.isAdvisoryOnly = True

        Raises:
            GuardrailViolationError: Request or generated text contains
                prohibited language
        """
        await self._check_request(request)

        checkins = await self._fetch_checkins(request)

        insights = await self._analyzer.analyze(checkins, request.type)
        recommendations = list(self.RECOMMENDATIONS)

        try:
            self._policy_filter.enforce_all(insights + recommendations, source="insight output")
        except GuardrailViolationError as e:
            await self._audit_logger.record_guardrail_block(
                request.userId, "insight_output", e.categories
            )
            raise

        response = self._advisory_enforcer.enforce(InsightResponse(
            type=request.type,
            insights=insights,
            recommendations=recommendations,
            metadata=InsightMetadata(dataPoints=len(checkins)),
        ))

        response = await self._persist(response)

        await self._audit_logger.record_ai_recommendation(
            request.userId,
            request.type,
            input_data=request.model_dump(mode="json"),
            output_data=response.model_dump(mode="json"),
        )

        logger.info(
            f"Generated {request.type} insight {response.id} from {len(checkins)} check-ins"
        )
        return response

    async def _check_request(self, request: InsightRequest) -> None:
        try:
            self._policy_filter.enforce(request.model_dump_json(), source="insight request")
        except GuardrailViolationError as e:
            await self._audit_logger.record_guardrail_block(
                request.userId, "insight_request", e.categories
            )
            raise

    async def _fetch_checkins(self, request: InsightRequest) -> List[Dict[str, Any]]:
        """Check-ins in range, restricted to users who allow AI analysis."""
        checkins = await self._checkin_store.get_in_range(
            request.timeRange.start,
            request.timeRange.end,
            user_id=request.userId
        )
        if not checkins:
            return []

        allowed = await self._privacy_service.filter_opted_in(c["userId"] for c in checkins)
        excluded = len(checkins)
        checkins = [c for c in checkins if c["userId"] in allowed]
        excluded -= len(checkins)

        if excluded:
            logger.debug(f"Excluded {excluded} check-ins from users not opted in to AI analysis")
        return checkins

    async def _persist(self, response: InsightResponse) -> InsightResponse:
        """Store the insight; a storage failure leaves the response unsaved."""
        try:
            stored = await self._insight_store.insert(response.model_dump(exclude={"id"}))
            return self._advisory_enforcer.enforce(InsightResponse(**stored))
        except Exception as e:
            logger.error(f"Failed to persist insight: {e}")
            return response
