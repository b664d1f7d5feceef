"""
MongoDB storage backend.

Motor-backed implementations of the store interfaces. Documents use
ObjectId keys in the database and are converted to string ids on the way
out so services never see BSON types.
"""

import logging
from datetime import datetime
from typing import Optional, List, Dict, Any

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import DuplicateKeyError

from care_os.database.collections import (
    CHECKINS,
    DEVIATIONS,
    USERS,
    AUDIT_LOGS,
    INSIGHTS,
)
from care_os.database.stores.base import (
    CheckInStore,
    DeviationStore,
    UserStore,
    AuditStore,
    InsightStore,
)

logger = logging.getLogger(__name__)

_REFERENCE_FIELDS = ("userId", "managerId", "resolvedBy", "reviewedBy")


def _oid(value: str) -> Optional[ObjectId]:
    """Convert a string id to ObjectId, or None if it is not one."""
    if isinstance(value, ObjectId):
        return value
    if not value or not ObjectId.is_valid(value):
        return None
    return ObjectId(value)


def _serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Turn a raw Mongo document into a store record."""
    if doc is None:
        return None
    record = dict(doc)
    record["id"] = str(record.pop("_id"))
    record.pop("openKey", None)
    for key in _REFERENCE_FIELDS:
        if isinstance(record.get(key), ObjectId):
            record[key] = str(record[key])
    return record


def _to_document(record: Dict[str, Any]) -> Dict[str, Any]:
    """Turn a store record into a Mongo document body (without _id)."""
    doc = {k: v for k, v in record.items() if k != "id"}
    for key in _REFERENCE_FIELDS:
        if isinstance(doc.get(key), str) and ObjectId.is_valid(doc[key]):
            doc[key] = ObjectId(doc[key])
    return doc


class MongoCheckInStore(CheckInStore):

    def __init__(self, db: AsyncIOMotorDatabase):
        """
        Initialize MongoCheckInStore.

        Args:
            db: MongoDB database connection
        """
        self._collection = db[CHECKINS]

    async def ensure_indexes(self) -> None:
        await self._collection.create_index(
            [("userId", ASCENDING), ("date", ASCENDING)], unique=True
        )
        await self._collection.create_index([("userId", ASCENDING), ("timestamp", DESCENDING)])
        await self._collection.create_index("timestamp")

    async def upsert_for_day(
        self,
        user_id: str,
        date: str,
        fields: Dict[str, Any]
    ) -> Dict[str, Any]:
        now = fields.get("timestamp")
        doc = _to_document({**fields, "userId": user_id, "date": date})

        result = await self._collection.find_one_and_update(
            {"userId": doc["userId"], "date": date},
            {
                "$set": {**doc, "updatedAt": now},
                "$setOnInsert": {"createdAt": now}
            },
            upsert=True,
            return_document=ReturnDocument.AFTER
        )
        return _serialize(result)

    async def get_by_id(self, checkin_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(checkin_id)
        if oid is None:
            return None
        return _serialize(await self._collection.find_one({"_id": oid}))

    async def update_fields(
        self,
        checkin_id: str,
        fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        oid = _oid(checkin_id)
        if oid is None:
            return None
        result = await self._collection.find_one_and_update(
            {"_id": oid},
            {"$set": _to_document(fields)},
            return_document=ReturnDocument.AFTER
        )
        return _serialize(result)

    async def get_recent(
        self,
        user_id: str,
        since: datetime,
        limit: int = 100
    ) -> List[Dict[str, Any]]:
        cursor = self._collection.find({
            "userId": _oid(user_id),
            "timestamp": {"$gte": since}
        })
        cursor = cursor.sort("timestamp", -1)
        cursor = cursor.limit(limit)

        return [_serialize(doc) for doc in await cursor.to_list(length=limit)]

    async def get_latest(self, user_id: str) -> Optional[Dict[str, Any]]:
        cursor = self._collection.find({"userId": _oid(user_id)}).sort("timestamp", -1).limit(1)
        docs = await cursor.to_list(length=1)
        return _serialize(docs[0]) if docs else None

    async def get_in_range(
        self,
        start: datetime,
        end: datetime,
        user_id: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"timestamp": {"$gte": start, "$lte": end}}
        if user_id:
            query["userId"] = _oid(user_id)

        cursor = self._collection.find(query).sort("timestamp", 1)
        return [_serialize(doc) async for doc in cursor]


class MongoDeviationStore(DeviationStore):
    """
    Deviation persistence with a storage-level duplicate guard.

    An open deviation holds ``openKey = "<userId>:<type>"`` under a partial
    unique index. The key is released when the deviation is resolved or
    falls outside the dedup window, so at most one open deviation per
    (userId, type) can be inserted inside the window even under concurrent
    detection runs.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self._collection = db[DEVIATIONS]

    async def ensure_indexes(self) -> None:
        await self._collection.create_index(
            "openKey",
            unique=True,
            partialFilterExpression={"openKey": {"$exists": True}}
        )
        await self._collection.create_index([("managerNotified", ASCENDING), ("resolved", ASCENDING)])
        await self._collection.create_index([("userId", ASCENDING), ("detectedAt", DESCENDING)])

    async def insert_if_absent(
        self,
        deviation: Dict[str, Any],
        window_start: datetime
    ) -> Optional[Dict[str, Any]]:
        open_key = f"{deviation['userId']}:{deviation['type']}"

        await self._collection.update_many(
            {"openKey": open_key, "detectedAt": {"$lt": window_start}},
            {"$unset": {"openKey": ""}}
        )

        doc = _to_document(deviation)
        doc["openKey"] = open_key
        try:
            result = await self._collection.insert_one(doc)
        except DuplicateKeyError:
            logger.debug(f"Open deviation already exists for {open_key}")
            return None

        doc["_id"] = result.inserted_id
        return _serialize(doc)

    async def get_by_id(self, deviation_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(deviation_id)
        if oid is None:
            return None
        return _serialize(await self._collection.find_one({"_id": oid}))

    async def list_pending(self) -> List[Dict[str, Any]]:
        cursor = self._collection.find({
            "managerNotified": False,
            "resolved": False
        }).sort("detectedAt", 1)
        return [_serialize(doc) async for doc in cursor]

    async def mark_notified(self, deviation_id: str, notified_at: datetime) -> bool:
        result = await self._collection.update_one(
            {"_id": _oid(deviation_id)},
            {"$set": {"managerNotified": True, "notifiedAt": notified_at}}
        )
        return result.matched_count > 0

    async def mark_resolved(
        self,
        deviation_id: str,
        resolved_by: str,
        resolved_at: datetime,
        notes: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        oid = _oid(deviation_id)
        if oid is None:
            return None

        update: Dict[str, Any] = {
            "resolved": True,
            "resolvedBy": _oid(resolved_by) or resolved_by,
            "resolvedAt": resolved_at,
        }
        if notes:
            update["resolutionNotes"] = notes

        result = await self._collection.find_one_and_update(
            {"_id": oid},
            {"$set": update, "$unset": {"openKey": ""}},
            return_document=ReturnDocument.AFTER
        )
        return _serialize(result)

    async def list_for_users(
        self,
        user_ids: List[str],
        resolved: Optional[bool] = None,
        severity: Optional[str] = None,
        since: Optional[datetime] = None,
        limit: int = 50
    ) -> List[Dict[str, Any]]:
        query: Dict[str, Any] = {"userId": {"$in": [_oid(uid) for uid in user_ids]}}
        if resolved is not None:
            query["resolved"] = resolved
        if severity:
            query["severity"] = severity
        if since:
            query["detectedAt"] = {"$gte": since}

        cursor = self._collection.find(query).sort("detectedAt", -1).limit(limit)
        return [_serialize(doc) for doc in await cursor.to_list(length=limit)]


class MongoUserStore(UserStore):
    """
    Users collection reader.

    Privacy settings are embedded in the user document under
    ``privacySettings``.
    """

    def __init__(self, db: AsyncIOMotorDatabase):
        self._collection = db[USERS]

    async def get_user(self, user_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(user_id)
        if oid is None:
            return None
        doc = await self._collection.find_one({"_id": oid}, {"privacySettings": 0})
        return _serialize(doc)

    async def list_employee_ids(self) -> List[str]:
        cursor = self._collection.find({"role": "EMPLOYEE"}, {"_id": 1})
        return [str(doc["_id"]) async for doc in cursor]

    async def list_direct_report_ids(self, manager_id: str) -> List[str]:
        cursor = self._collection.find({"managerId": _oid(manager_id)}, {"_id": 1})
        return [str(doc["_id"]) async for doc in cursor]

    async def get_privacy_settings(self, user_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(user_id)
        if oid is None:
            return None
        doc = await self._collection.find_one({"_id": oid}, {"privacySettings": 1})
        if not doc:
            return None
        return doc.get("privacySettings")


class MongoAuditStore(AuditStore):

    def __init__(self, db: AsyncIOMotorDatabase):
        self._collection = db[AUDIT_LOGS]

    async def append(self, entry: Dict[str, Any]) -> None:
        await self._collection.insert_one(_to_document(entry))


class MongoInsightStore(InsightStore):

    def __init__(self, db: AsyncIOMotorDatabase):
        self._collection = db[INSIGHTS]

    async def insert(self, insight: Dict[str, Any]) -> Dict[str, Any]:
        doc = _to_document(insight)
        result = await self._collection.insert_one(doc)
        doc["_id"] = result.inserted_id
        return _serialize(doc)

    async def get_by_id(self, insight_id: str) -> Optional[Dict[str, Any]]:
        oid = _oid(insight_id)
        if oid is None:
            return None
        return _serialize(await self._collection.find_one({"_id": oid}))

    async def mark_reviewed(
        self,
        insight_id: str,
        reviewed_by: str,
        reviewed_at: datetime,
        action_taken: Optional[str] = None
    ) -> Optional[Dict[str, Any]]:
        oid = _oid(insight_id)
        if oid is None:
            return None
        result = await self._collection.find_one_and_update(
            {"_id": oid},
            {"$set": {
                "humanReviewed": True,
                "reviewedBy": _oid(reviewed_by) or reviewed_by,
                "reviewedAt": reviewed_at,
                "actionTaken": action_taken,
            }},
            return_document=ReturnDocument.AFTER
        )
        return _serialize(result)
