"""
Response guard for manager-facing routes.

Runs the policy filter in reporting mode over each response body right
before it is sent.
"""

from typing import Any, Dict, Union

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from care_os.guardrails.services.policy_filter import PolicyFilter


def guarded_response(
    policy_filter: PolicyFilter,
    payload: Dict[str, Any]
) -> Union[Dict[str, Any], JSONResponse]:
    """
    Return the payload, or the Content Violation body with status 500.

    Args:
        policy_filter: Filter to scan with
        payload: Response body about to be sent
    """
    body = jsonable_encoder(payload)
    filtered, is_clean = policy_filter.filter_payload(body)
    if is_clean:
        return body
    return JSONResponse(status_code=500, content=filtered)
