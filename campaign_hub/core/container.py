"""
Service container.

Every external client (MongoDB, HTTP, SMTP, Slack, Firebase) and every
service is constructed exactly once here from the validated settings, during
application startup or at the start of a Celery task. Routers reach the
instances through ``core.dependencies``; nothing is created at import time.
"""

import logging
from pathlib import Path
from typing import Any, Dict, Optional

import httpx
from fastapi.templating import Jinja2Templates
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from .config import Settings
from .database import DatabaseManager
from .dispatch import BackgroundDispatcher
from ..shared.clients.contentstack_client import ContentstackClient
from ..shared.clients.email_client import EmailClient
from ..shared.clients.push_client import PushClient
from ..shared.clients.slack_client import SlackClient
from ..shared.formatting import humanize_field
from ..domains.campaigns.service import CampaignService
from ..domains.forms.service import FormService
from ..domains.notifications.chat_service import ChatNotificationService
from ..domains.notifications.email_service import EmailNotificationService
from ..domains.push.repository import PushRepository
from ..domains.push.service import PushService
from ..domains.subscriptions.repository import SubscriptionRepository
from ..domains.subscriptions.service import SubscriptionService

logger = logging.getLogger(__name__)

TEMPLATES_DIR = Path(__file__).resolve().parent.parent / "templates"


class ServiceContainer:
    """Owns the process-wide clients and the services wired from them"""

    def __init__(
        self,
        settings: Settings,
        database: Optional[AsyncIOMotorDatabase] = None,
        http: Optional[httpx.AsyncClient] = None,
        email_client: Optional[EmailClient] = None,
        push_client: Optional[PushClient] = None,
    ):
        self.settings = settings

        self.db_manager: Optional[DatabaseManager] = None
        if database is None:
            self.db_manager = DatabaseManager(settings)
            database = self.db_manager.connect()
        self.database = database

        self.http = http or httpx.AsyncClient(timeout=httpx.Timeout(settings.http_timeout_seconds))
        self.dispatcher = BackgroundDispatcher()
        self.templates = Jinja2Templates(directory=str(TEMPLATES_DIR))
        self.templates.env.filters["humanize"] = humanize_field

        # Clients
        self.contentstack = ContentstackClient(settings, self.http)
        self.email_client = email_client or EmailClient(settings)
        self.slack_client = SlackClient(settings, self.http)
        self.push_client = push_client or PushClient(settings)

        # Repositories
        self.subscription_repository = SubscriptionRepository(database)
        self.push_repository = PushRepository(database, use_transactions=settings.mongodb_transactions)

        # Services
        self.campaign_service = CampaignService(self.contentstack, settings.contentstack_home_page_uid)
        self.email_service = EmailNotificationService(self.contentstack, self.email_client, settings)
        self.chat_service = ChatNotificationService(self.slack_client)
        self.form_service = FormService(
            self.contentstack,
            self.email_service,
            self.chat_service,
            self.dispatcher,
            settings,
        )
        self.subscription_service = SubscriptionService(self.subscription_repository)
        self.push_service = PushService(self.push_repository, self.push_client)

    async def startup(self) -> None:
        try:
            await self.subscription_service.init()
        except PyMongoError as e:
            # pages and form intake work without the database; /health reports it
            logger.warning(f"Index setup skipped, database unavailable: {e}")

    async def health(self) -> Dict[str, Any]:
        database_ok = await self.db_manager.is_healthy() if self.db_manager else True
        return {
            "database": "connected" if database_ok else "unavailable",
            "background_jobs": self.dispatcher.pending,
        }

    async def aclose(self) -> None:
        await self.dispatcher.drain()
        await self.http.aclose()
        if self.db_manager is not None:
            self.db_manager.close()
        logger.info("Service container closed")
