"""
Storage interfaces and their MongoDB / in-memory implementations.
"""

from care_os.database.stores.base import (
    CheckInStore,
    DeviationStore,
    UserStore,
    AuditStore,
    InsightStore,
)

__all__ = [
    "CheckInStore",
    "DeviationStore",
    "UserStore",
    "AuditStore",
    "InsightStore",
]
