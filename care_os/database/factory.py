"""
Storage backend factory.

Builds the full set of stores for the configured backend.
"""

import logging
from dataclasses import dataclass

from motor.motor_asyncio import AsyncIOMotorDatabase

from care_os.database.stores.base import (
    CheckInStore,
    DeviationStore,
    UserStore,
    AuditStore,
    InsightStore,
)
from care_os.database.stores.memory import (
    MemoryCheckInStore,
    MemoryDeviationStore,
    MemoryUserStore,
    MemoryAuditStore,
    MemoryInsightStore,
)
from care_os.database.stores.mongo import (
    MongoCheckInStore,
    MongoDeviationStore,
    MongoUserStore,
    MongoAuditStore,
    MongoInsightStore,
)

logger = logging.getLogger(__name__)


@dataclass
class Stores:
    """The stores one process runs against."""
    checkins: CheckInStore
    deviations: DeviationStore
    users: UserStore
    audit: AuditStore
    insights: InsightStore

    async def ensure_indexes(self) -> None:
        """Create backend indexes where the backend has any."""
        for store in (self.checkins, self.deviations):
            ensure = getattr(store, "ensure_indexes", None)
            if ensure is not None:
                await ensure()


def create_memory_stores() -> Stores:
    """Create in-memory stores (demo mode and tests)."""
    logger.info("Using in-memory storage backend")
    return Stores(
        checkins=MemoryCheckInStore(),
        deviations=MemoryDeviationStore(),
        users=MemoryUserStore(),
        audit=MemoryAuditStore(),
        insights=MemoryInsightStore(),
    )


def create_mongo_stores(db: AsyncIOMotorDatabase) -> Stores:
    """
    Create MongoDB-backed stores.

    Args:
        db: MongoDB database connection
    """
    logger.info("Using MongoDB storage backend")
    return Stores(
        checkins=MongoCheckInStore(db),
        deviations=MongoDeviationStore(db),
        users=MongoUserStore(db),
        audit=MongoAuditStore(db),
        insights=MongoInsightStore(db),
    )
