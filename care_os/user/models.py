"""
Pydantic models for users and their privacy settings.

Users are owned by an external identity system; this core only reads them.
"""

from enum import Enum
from typing import Optional
from pydantic import BaseModel, ConfigDict

from care_os.checkin.models import Visibility


class Role(str, Enum):
    EMPLOYEE = "EMPLOYEE"
    MANAGER = "MANAGER"
    EXECUTIVE = "EXECUTIVE"
    CARE_CONSULTANT = "CARE_CONSULTANT"


class PrivacySettings(BaseModel):
    """
    Per-user privacy flags.

    A user without stored settings has not opted in to AI analysis.
    """
    model_config = ConfigDict(use_enum_values=True)

    allowAiAnalysis: bool = False
    checkinVisibility: Visibility = Visibility.MANAGER


class User(BaseModel):
    model_config = ConfigDict(use_enum_values=True)

    id: str
    displayName: Optional[str] = None
    role: Role = Role.EMPLOYEE
    managerId: Optional[str] = None
    platformId: Optional[str] = None
    platformType: Optional[str] = None  # "slack", "teams", ...
