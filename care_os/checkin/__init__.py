"""
Check-in System

Daily mood and workload snapshots, with per-check-in visibility controls.
"""

from care_os.checkin.models import CheckIn, CheckInRequest, CheckInUpdateRequest, Visibility

__all__ = [
    "CheckIn",
    "CheckInRequest",
    "CheckInUpdateRequest",
    "Visibility",
]
