from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, Optional

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ASCENDING

from .models import SUBSCRIBERS_COLLECTION, USER_INDEX_COLLECTION


class SubscriptionRepository:
    def __init__(self, db: AsyncIOMotorDatabase):
        self.db = db
        self.subscribers = db[SUBSCRIBERS_COLLECTION]
        self.user_index = db[USER_INDEX_COLLECTION]

    async def ensure_indexes(self) -> None:
        await self.subscribers.create_index([("campaign_id", ASCENDING), ("notifications_enabled", ASCENDING)])
        await self.subscribers.create_index([("fcm_token", ASCENDING)], sparse=True)

    async def upsert_subscriber(
        self,
        key: str,
        fields: Dict[str, Any],
        submitted_at: datetime,
    ) -> bool:
        """Create or field-merge the Subscriber Record; returns True when created."""
        res = await self.subscribers.update_one(
            {"_id": key},
            {
                "$set": fields,
                "$setOnInsert": {"submitted_at": submitted_at},
            },
            upsert=True,
        )
        return res.upserted_id is not None

    async def merge_user_index(
        self,
        email: str,
        name: str,
        campaign_id: str,
        campaign_entry: Dict[str, Any],
        now: datetime,
        fcm_token: Optional[str] = None,
    ) -> None:
        """Merge one campaign (and optionally one device token) into the user's index."""
        updates: Dict[str, Any] = {
            "email": email,
            "name": name,
            "last_updated": now,
        }
        for field_name, value in campaign_entry.items():
            updates[f"campaigns.{campaign_id}.{field_name}"] = value

        update: Dict[str, Any] = {"$set": updates}
        if fcm_token:
            updates[f"fcm_tokens.{fcm_token}.added_at"] = now
            update["$addToSet"] = {f"fcm_tokens.{fcm_token}.campaigns": campaign_id}

        await self.user_index.update_one({"_id": email}, update, upsert=True)

    async def get_subscriber(self, key: str) -> Optional[Dict[str, Any]]:
        return await self.subscribers.find_one({"_id": key})
