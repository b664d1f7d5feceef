"""
CARE OS API Routers.

All routers are imported here for easy access.
"""

from care_os.routers.checkin import router as checkin_router
from care_os.routers.deviations import router as deviations_router
from care_os.routers.insights import router as insights_router

__all__ = [
    "checkin_router",
    "deviations_router",
    "insights_router",
]
