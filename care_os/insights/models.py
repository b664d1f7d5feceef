"""
Pydantic models for the advisory insight system.

The advisory flag is coerced to True by the model itself, both on
construction and on assignment, so no caller configuration can turn it off.
"""

from datetime import datetime, timezone
from typing import Optional, List, Any
from pydantic import BaseModel, ConfigDict, Field, field_validator


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TimeRange(BaseModel):
    """Analysis window. Naive datetimes are read as UTC."""
    start: datetime
    end: datetime

    @field_validator("start", "end")
    @classmethod
    def _as_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class InsightRequest(BaseModel):
    """Request for an on-demand insight."""
    type: str = "team_wellbeing"
    timeRange: TimeRange
    userId: Optional[str] = None


class InsightMetadata(BaseModel):
    model_config = ConfigDict(validate_assignment=True)

    isAdvisoryOnly: bool = True
    generatedAt: datetime = Field(default_factory=_utcnow)
    dataPoints: int = 0

    @field_validator("isAdvisoryOnly", mode="before")
    @classmethod
    def _always_advisory(cls, value: Any) -> bool:
        return True


class InsightResponse(BaseModel):
    """An advisory insight plus its human-review trail."""
    model_config = ConfigDict(validate_assignment=True)

    id: Optional[str] = None
    type: str
    insights: List[str]
    recommendations: List[str] = Field(default_factory=list)
    metadata: InsightMetadata = Field(default_factory=InsightMetadata)
    humanReviewed: bool = False
    reviewedBy: Optional[str] = None
    reviewedAt: Optional[datetime] = None
    actionTaken: Optional[str] = None


class InsightReviewRequest(BaseModel):
    actionTaken: Optional[str] = Field(None, max_length=1000)
