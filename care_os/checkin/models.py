"""
Pydantic models for the Check-in system.

Defines the stored check-in record and request schemas.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict, Field


class Visibility(str, Enum):
    """Who may see a check-in besides its owner."""
    PRIVATE = "PRIVATE"
    MANAGER = "MANAGER"
    PUBLIC = "PUBLIC"


class CheckIn(BaseModel):
    """A user's wellbeing snapshot for one day."""
    model_config = ConfigDict(use_enum_values=True)

    id: str
    userId: str
    date: Optional[str] = None  # YYYY-MM-DD, upsert key together with userId
    timestamp: datetime
    moodScore: int = Field(..., ge=1, le=10, description="1=struggling, 10=great")
    workloadLevel: int = Field(..., ge=1, le=10, description="1=light, 10=overloaded")
    energyLevel: Optional[int] = Field(None, ge=1, le=10)
    stressLevel: Optional[int] = Field(None, ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=500)
    visibility: Visibility = Visibility.MANAGER


class CheckInRequest(BaseModel):
    """Request body for submitting a check-in."""
    moodScore: int = Field(..., ge=1, le=10)
    workloadLevel: int = Field(..., ge=1, le=10)
    energyLevel: Optional[int] = Field(None, ge=1, le=10)
    stressLevel: Optional[int] = Field(None, ge=1, le=10)
    notes: Optional[str] = Field(None, max_length=500)
    visibility: Optional[Visibility] = None


class CheckInUpdateRequest(BaseModel):
    """Only visibility and notes are mutable after creation."""
    visibility: Optional[Visibility] = None
    notes: Optional[str] = Field(None, max_length=500)
