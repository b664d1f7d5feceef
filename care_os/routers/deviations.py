"""
FastAPI router for manager-facing deviation endpoints.

Every response body passes the policy filter in reporting mode.
"""

import logging
from typing import Annotated, Optional

from fastapi import APIRouter, Depends, Query

from common.utils import success_response, list_response
from care_os.dependencies import (
    CAPABILITY_READ_TEAM_DEVIATIONS,
    require_capability,
    get_deviation_service,
    get_policy_filter,
)
from care_os.deviation.models import DeviationSeverity, ResolveDeviationRequest
from care_os.deviation.services.deviation_service import DeviationService
from care_os.guardrails.services.policy_filter import PolicyFilter
from care_os.routers.guarded import guarded_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/deviations", tags=["deviations"])

require_team_access = require_capability(CAPABILITY_READ_TEAM_DEVIATIONS)


@router.get("")
async def list_deviations(
    user: Annotated[dict, Depends(require_team_access)],
    deviation_service: Annotated[DeviationService, Depends(get_deviation_service)],
    policy_filter: Annotated[PolicyFilter, Depends(get_policy_filter)],
    resolved: Optional[bool] = Query(None),
    severity: Optional[DeviationSeverity] = Query(None),
    limit: int = Query(50, ge=1, le=200),
):
    """Get deviations for the caller's direct reports, newest first."""
    deviations = await deviation_service.list_for_manager(
        user["id"],
        resolved=resolved,
        severity=severity.value if severity else None,
        limit=limit
    )
    return guarded_response(policy_filter, list_response(deviations))


@router.get("/statistics")
async def get_statistics(
    user: Annotated[dict, Depends(require_team_access)],
    deviation_service: Annotated[DeviationService, Depends(get_deviation_service)],
    policy_filter: Annotated[PolicyFilter, Depends(get_policy_filter)],
):
    """Deviation counts for the caller's team over the last 30 days."""
    statistics = await deviation_service.get_statistics(user["id"])
    return guarded_response(policy_filter, success_response(statistics))


@router.post("/{deviation_id}/resolve")
async def resolve_deviation(
    deviation_id: str,
    body: ResolveDeviationRequest,
    user: Annotated[dict, Depends(require_team_access)],
    deviation_service: Annotated[DeviationService, Depends(get_deviation_service)],
    policy_filter: Annotated[PolicyFilter, Depends(get_policy_filter)],
):
    """Mark a deviation resolved after the manager followed up."""
    deviation = await deviation_service.resolve(deviation_id, user["id"], notes=body.notes)
    payload = success_response(deviation.model_dump(mode="json"), message="Deviation resolved")
    return guarded_response(policy_filter, payload)
