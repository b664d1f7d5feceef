"""
Insight System

On-demand, advisory-only team wellbeing insights with human review.
"""

from care_os.insights.models import (
    InsightMetadata,
    InsightRequest,
    InsightResponse,
    InsightReviewRequest,
    TimeRange,
)

__all__ = [
    "InsightMetadata",
    "InsightRequest",
    "InsightResponse",
    "InsightReviewRequest",
    "TimeRange",
]
