"""
Check-in system pipeline functions.

Stateless orchestration logic for check-in operations.
"""

import logging
from typing import Dict, Any

from care_os.checkin.models import CheckInRequest
from care_os.checkin.services.checkin_service import CheckInService
from care_os.deviation.services.deviation_detector import DeviationDetector

logger = logging.getLogger(__name__)


async def submit_checkin_pipeline(
    checkin_service: CheckInService,
    deviation_detector: DeviationDetector,
    user_id: str,
    data: CheckInRequest
) -> Dict[str, Any]:
    """
    Orchestrates the check-in submission flow.

    The check-in is persisted first. Deviation analysis runs afterwards and
    never fails the submission.

    Args:
        checkin_service: For data persistence
        deviation_detector: For post-submission analysis
        user_id: Current user's ID
        data: Check-in values from request

    Returns:
        Response dict with the saved check-in. Flagged metrics become a
        deviation for the manager; the submitting user is not told about them.
    """
    checkin = await checkin_service.submit_checkin(user_id, data)

    flagged_metrics = 0
    try:
        metric_deviations = await deviation_detector.check_single_submission(user_id)
        if metric_deviations:
            flagged_metrics = len(metric_deviations)
            await deviation_detector.record_submission_deviation(user_id, metric_deviations)
    except Exception as e:
        # Don't fail check-in if analysis fails
        logger.warning(f"Per-submission deviation check failed for user {user_id}: {e}")

    try:
        await deviation_detector.detect_deviations_for_user(user_id)
    except Exception as e:
        logger.warning(f"Deviation detection after check-in failed for user {user_id}: {e}")

    logger.debug(f"Check-in pipeline done for user {user_id}, flagged metrics: {flagged_metrics}")

    return {"checkin": checkin.model_dump(mode="json")}
