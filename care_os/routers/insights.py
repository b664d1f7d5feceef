"""
FastAPI router for advisory insight endpoints.
"""

import logging
from datetime import datetime, timezone, timedelta
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import success_response
from care_os.config import Settings
from care_os.dependencies import (
    CAPABILITY_READ_INSIGHTS,
    require_capability,
    get_insight_generator,
    get_insight_review_service,
    get_policy_filter,
    get_settings,
)
from care_os.guardrails.services.policy_filter import PolicyFilter
from care_os.insights.models import InsightRequest, InsightReviewRequest, TimeRange
from care_os.insights.services.insight_generator import InsightGenerator
from care_os.insights.services.insight_review import InsightReviewService
from care_os.routers.guarded import guarded_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/insights", tags=["insights"])

require_insight_access = require_capability(CAPABILITY_READ_INSIGHTS)


@router.get("")
async def get_insight(
    user: Annotated[dict, Depends(require_insight_access)],
    insight_generator: Annotated[InsightGenerator, Depends(get_insight_generator)],
    policy_filter: Annotated[PolicyFilter, Depends(get_policy_filter)],
    settings: Annotated[Settings, Depends(get_settings)],
    type: str = Query("team_wellbeing"),
    startDate: Optional[datetime] = Query(None),
    endDate: Optional[datetime] = Query(None),
    userId: Optional[str] = Query(None),
):
    """
    Generate an advisory insight.

    Defaults to the last INSIGHT_DEFAULT_RANGE_DAYS days across all
    check-ins the caller's analysis may include.
    """
    end = endDate or datetime.now(timezone.utc)
    start = startDate or end - timedelta(days=settings.INSIGHT_DEFAULT_RANGE_DAYS)

    request = InsightRequest(type=type, timeRange=TimeRange(start=start, end=end), userId=userId)
    insight = await insight_generator.generate(request)

    return guarded_response(policy_filter, success_response(insight.model_dump(mode="json")))


@router.post("/{insight_id}/review")
async def review_insight(
    insight_id: str,
    body: InsightReviewRequest,
    user: Annotated[dict, Depends(require_insight_access)],
    review_service: Annotated[InsightReviewService, Depends(get_insight_review_service)],
    policy_filter: Annotated[PolicyFilter, Depends(get_policy_filter)],
):
    """Record that the caller reviewed an insight and what they did."""
    insight = await review_service.mark_reviewed(
        insight_id, user["id"], action_taken=body.actionTaken
    )
    payload = success_response(insight.model_dump(mode="json"), message="Insight reviewed")
    return guarded_response(policy_filter, payload)
