"""
MongoDB connection management.

The manager is built once by the service container from the validated
settings; repositories receive the database handle it hands out instead of
reaching for a module-level client.
"""

import time
import logging
from typing import Optional, Any, Dict
from urllib.parse import parse_qs, urlsplit

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase

from .config import Settings

logger = logging.getLogger(__name__)


def url_supports_transactions(mongodb_url: str) -> bool:
    """Whether the URL points at a replica set or an SRV cluster."""
    parts = urlsplit(mongodb_url)
    if parts.scheme == "mongodb+srv":
        return True
    return bool(parse_qs(parts.query).get("replicaSet"))


def warn_if_transactions_unsupported(settings: Settings) -> bool:
    if settings.mongodb_transactions and not url_supports_transactions(settings.mongodb_url):
        logger.warning(
            "MONGODB_TRANSACTIONS is on but MONGODB_URL names no replica set; "
            "invalid-token cleanup will fail on a standalone server. "
            "Set MONGODB_TRANSACTIONS=false for standalone deployments."
        )
        return True
    return False


class DatabaseManager:
    """Lazily connected async MongoDB client with a cached health flag"""

    def __init__(self, settings: Settings):
        self.settings = settings
        self.client: Optional[AsyncIOMotorClient] = None
        self.database: Optional[AsyncIOMotorDatabase] = None
        self._connection_healthy = False
        self._last_health_check = 0.0
        self._health_check_interval = 30  # seconds

    def _get_client_options(self) -> Dict[str, Any]:
        """Connection options for the async client"""
        return {
            "maxPoolSize": 50,
            "minPoolSize": 0,
            "maxIdleTimeMS": 300000,

            # Timeout configurations
            "connectTimeoutMS": 5000,
            "socketTimeoutMS": 15000,
            "serverSelectionTimeoutMS": 5000,

            "retryWrites": True,
            "retryReads": True,
            "tz_aware": True,
        }

    def connect(self) -> AsyncIOMotorDatabase:
        """Create the client; no I/O happens until the first operation."""
        if self.database is None:
            warn_if_transactions_unsupported(self.settings)
            self.client = AsyncIOMotorClient(self.settings.mongodb_url, **self._get_client_options())
            self.database = self.client[self.settings.database_name]
            logger.info("MongoDB client created for database '%s'", self.settings.database_name)
        return self.database

    def close(self) -> None:
        if self.client is not None:
            self.client.close()
            self.client = None
            self.database = None
            logger.info("MongoDB connection closed")

    async def is_healthy(self) -> bool:
        """Ping the server at most once per interval."""
        current_time = time.time()
        if (current_time - self._last_health_check) < self._health_check_interval:
            return self._connection_healthy

        try:
            database = self.connect()
            await database.command("ping", maxTimeMS=2000)
            self._connection_healthy = True
        except Exception as e:
            logger.warning(f"Database health check failed: {e}")
            self._connection_healthy = False
        self._last_health_check = current_time
        return self._connection_healthy
