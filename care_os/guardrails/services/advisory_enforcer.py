"""
Advisory envelope enforcer.

Stamps every AI-derived output as advisory-only. This is the last step
before an insight leaves the system and cannot be configured away.
"""

from typing import Any, Dict, Union

from care_os.insights.models import InsightResponse

ADVISORY_BADGE = "⚠️ Advisory Only - Human Decision Required"

ADVISORY_DISCLAIMER = (
    "This analysis is provided for advisory purposes only. "
    "All insights must be reviewed and validated by authorized personnel "
    "before any action is taken. CARE OS does not make decisions, humans do."
)


class AdvisoryEnforcer:
    """
    Pure, idempotent transforms that force the advisory markers on.
    """

    def enforce(
        self,
        response: Union[InsightResponse, Dict[str, Any]]
    ) -> Union[InsightResponse, Dict[str, Any]]:
        """
        Return a copy of the response with metadata.isAdvisoryOnly = True.

        The input is never mutated. Whatever the input said about the flag
        is overwritten.

        Args:
            response: InsightResponse model or plain dict

        Returns:
            Same type as the input, advisory flag forced on
        """
        if isinstance(response, InsightResponse):
            metadata = response.metadata.model_copy(update={"isAdvisoryOnly": True})
            return response.model_copy(update={"metadata": metadata})

        metadata = dict(response.get("metadata") or {})
        metadata["isAdvisoryOnly"] = True
        return {**response, "metadata": metadata}

    def stamp_payload(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """
        Add advisory markers to a non-insight AI-derived payload.

        Used for deviation listings and statistics shown to managers.
        """
        return {
            **payload,
            "advisoryOnly": True,
            "requiresHumanReview": True,
            "disclaimer": ADVISORY_DISCLAIMER,
        }
