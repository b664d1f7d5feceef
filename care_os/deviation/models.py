"""
Pydantic models for deviation detection and alerting.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Optional, Dict
from pydantic import BaseModel, ConfigDict, Field


class DeviationType(str, Enum):
    MOOD_DROP = "mood_drop"
    SUSTAINED_LOW_MOOD = "sustained_low_mood"
    HIGH_WORKLOAD = "high_workload"
    MISSED_CHECKINS = "missed_checkins"
    CHECKIN_SHIFT = "checkin_shift"  # per-submission relative check


class DeviationSeverity(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
    CRITICAL = "CRITICAL"


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Deviation(BaseModel):
    """
    A detected pattern shift in a user's check-in history.

    Created by the detector, marked notified by the alert dispatcher and
    resolved by the user's manager. Deviations are never deleted.
    """
    model_config = ConfigDict(use_enum_values=True)

    id: Optional[str] = None
    userId: str
    type: DeviationType
    severity: DeviationSeverity
    description: str
    metrics: Dict[str, float] = Field(default_factory=dict)
    detectedAt: datetime = Field(default_factory=_utcnow)
    resolved: bool = False
    resolvedAt: Optional[datetime] = None
    resolvedBy: Optional[str] = None
    resolutionNotes: Optional[str] = None
    managerNotified: bool = False
    notifiedAt: Optional[datetime] = None


class MetricDeviation(BaseModel):
    """A single metric that moved sharply against its 7-day mean."""
    metric: str  # energy, stress, workload
    previous: float
    current: float
    changePercent: float


class ResolveDeviationRequest(BaseModel):
    notes: Optional[str] = Field(None, max_length=1000)
