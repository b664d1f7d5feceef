"""
FastAPI router for Check-in endpoints.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Query

from common.utils import success_response, list_response
from care_os.dependencies import (
    require_auth,
    get_checkin_service,
    get_deviation_detector,
    get_policy_filter,
)
from care_os.checkin.models import CheckInRequest, CheckInUpdateRequest
from care_os.checkin.services.checkin_service import CheckInService
from care_os.deviation.services.deviation_detector import DeviationDetector
from care_os.guardrails.services.policy_filter import PolicyFilter
from care_os.pipelines import checkin as pipelines
from care_os.routers.guarded import guarded_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/checkins", tags=["checkins"])


@router.post("")
async def submit_checkin(
    body: CheckInRequest,
    user: Annotated[dict, Depends(require_auth)],
    checkin_service: Annotated[CheckInService, Depends(get_checkin_service)],
    deviation_detector: Annotated[DeviationDetector, Depends(get_deviation_detector)],
):
    """
    Submit a daily check-in.

    Creates or replaces today's check-in, then runs deviation analysis.
    """
    result = await pipelines.submit_checkin_pipeline(
        checkin_service=checkin_service,
        deviation_detector=deviation_detector,
        user_id=user["id"],
        data=body
    )
    return success_response(result, message="Check-in recorded")


@router.patch("/{checkin_id}")
async def update_checkin(
    checkin_id: str,
    body: CheckInUpdateRequest,
    user: Annotated[dict, Depends(require_auth)],
    checkin_service: Annotated[CheckInService, Depends(get_checkin_service)],
):
    """Change the visibility or notes of one of the caller's check-ins."""
    checkin = await checkin_service.update_checkin(
        checkin_id,
        user["id"],
        visibility=body.visibility,
        notes=body.notes
    )
    return success_response(checkin.model_dump(mode="json"))


@router.get("/users/{user_id}")
async def get_user_checkins(
    user_id: str,
    user: Annotated[dict, Depends(require_auth)],
    checkin_service: Annotated[CheckInService, Depends(get_checkin_service)],
    policy_filter: Annotated[PolicyFilter, Depends(get_policy_filter)],
    limit: int = Query(30, ge=1, le=90),
):
    """
    Get a user's check-ins as visible to the caller.

    Notes are free text written by the employee, so the body goes through
    the response guard like every other payload a manager can read.
    """
    checkins = await checkin_service.get_visible_checkins(user_id, user, limit=limit)
    payload = list_response([c.model_dump(mode="json") for c in checkins])
    return guarded_response(policy_filter, payload)
