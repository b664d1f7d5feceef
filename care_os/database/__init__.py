"""
CARE OS storage layer.

One storage interface, two interchangeable backends selected once at
startup via STORAGE_BACKEND.

Usage:
    from care_os.database import create_memory_stores, create_mongo_stores

    stores = create_memory_stores()
    # or
    stores = create_mongo_stores(main_db.db)
    await stores.ensure_indexes()
"""

from care_os.database.factory import Stores, create_memory_stores, create_mongo_stores

__all__ = [
    "Stores",
    "create_memory_stores",
    "create_mongo_stores",
]
