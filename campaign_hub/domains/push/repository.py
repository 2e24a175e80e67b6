from __future__ import annotations

import logging
from collections import defaultdict
from datetime import datetime
from typing import Any, Dict, List, Tuple

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import UpdateMany, UpdateOne

from ..subscriptions.models import SUBSCRIBERS_COLLECTION, USER_INDEX_COLLECTION

logger = logging.getLogger(__name__)

TOKEN_REMOVED_REASON = "Invalid or expired token"


def enabled_filter(campaign_id: str) -> Dict[str, Any]:
    return {
        "campaign_id": campaign_id,
        "notifications_enabled": True,
        "fcm_token": {"$nin": [None, ""]},
    }


class PushRepository:
    """Device-token reads and the invalid-token cleanup write group."""

    def __init__(self, db: AsyncIOMotorDatabase, use_transactions: bool = True):
        self.db = db
        self.use_transactions = use_transactions
        self.subscribers = db[SUBSCRIBERS_COLLECTION]
        self.user_index = db[USER_INDEX_COLLECTION]

    async def enabled_tokens(self, campaign_id: str) -> List[str]:
        """Distinct enabled tokens for a campaign, in first-seen order."""
        cursor = self.subscribers.find(enabled_filter(campaign_id), {"fcm_token": 1})
        tokens: Dict[str, None] = {}
        async for doc in cursor:
            tokens.setdefault(doc["fcm_token"], None)
        return list(tokens)

    async def campaign_stats(self, campaign_id: str) -> Tuple[int, int]:
        total = await self.subscribers.count_documents({"campaign_id": campaign_id})
        enabled = await self.subscribers.count_documents(enabled_filter(campaign_id))
        return total, enabled

    async def _build_cleanup_ops(
        self,
        failures: Dict[str, str],
        now: datetime,
    ) -> Tuple[List[UpdateMany], List[UpdateOne]]:
        tokens = list(failures)

        subscriber_ops = [
            UpdateMany(
                {"fcm_token": token},
                {
                    "$unset": {"fcm_token": "", "fcm_token_updated_at": ""},
                    "$set": {
                        "notifications_enabled": False,
                        "token_removed_at": now,
                        "token_removed_reason": f"{TOKEN_REMOVED_REASON} ({reason})",
                    },
                },
            )
            for token, reason in failures.items()
        ]

        user_sets: Dict[str, Dict[str, Any]] = defaultdict(dict)
        user_unsets: Dict[str, Dict[str, str]] = defaultdict(dict)

        # campaigns whose subscription loses its token are disabled in the index too
        affected = self.subscribers.find({"fcm_token": {"$in": tokens}}, {"email": 1, "campaign_id": 1})
        async for doc in affected:
            user_sets[doc["email"]][f"campaigns.{doc['campaign_id']}.notifications_enabled"] = False

        holders = self.user_index.find(
            {"$or": [{f"fcm_tokens.{token}": {"$exists": True}} for token in tokens]},
            {"fcm_tokens": 1},
        )
        async for doc in holders:
            for token in tokens:
                if token in (doc.get("fcm_tokens") or {}):
                    user_unsets[doc["_id"]][f"fcm_tokens.{token}"] = ""

        user_ops = []
        for email in set(user_sets) | set(user_unsets):
            update: Dict[str, Any] = {
                "$set": {**user_sets[email], "last_updated": now, "token_removed_at": now},
            }
            if user_unsets[email]:
                update["$unset"] = user_unsets[email]
            user_ops.append(UpdateOne({"_id": email}, update))
        return subscriber_ops, user_ops

    async def remove_invalid_tokens(self, failures: Dict[str, str], now: datetime) -> int:
        """Clear each failed token from every record that references it.

        ``failures`` maps token -> failure reason. All writes land together:
        inside one transaction when enabled, otherwise as one ordered bulk
        write per collection. Returns the number of documents modified.
        """
        if not failures:
            return 0
        subscriber_ops, user_ops = await self._build_cleanup_ops(failures, now)

        if self.use_transactions:
            async with await self.db.client.start_session() as session:
                async with session.start_transaction():
                    subs_result = await self.subscribers.bulk_write(subscriber_ops, session=session)
                    users_result = (
                        await self.user_index.bulk_write(user_ops, session=session) if user_ops else None
                    )
        else:
            subs_result = await self.subscribers.bulk_write(subscriber_ops)
            users_result = await self.user_index.bulk_write(user_ops) if user_ops else None

        modified = subs_result.modified_count + (users_result.modified_count if users_result else 0)
        logger.info(f"Token cleanup modified {modified} document(s) for {len(failures)} token(s)")
        return modified
