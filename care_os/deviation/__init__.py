"""
Deviation System

Detects meaningful shifts in check-in patterns and prompts the affected
user's manager to offer support.
"""

from care_os.deviation.models import (
    Deviation,
    DeviationSeverity,
    DeviationType,
    MetricDeviation,
    ResolveDeviationRequest,
)

__all__ = [
    "Deviation",
    "DeviationSeverity",
    "DeviationType",
    "MetricDeviation",
    "ResolveDeviationRequest",
]
