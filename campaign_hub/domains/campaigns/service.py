from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from ...shared.clients.contentstack_client import ContentstackClient
from ...shared.exceptions import BaseAPIException

logger = logging.getLogger(__name__)

CAMPAIGNS_CONTENT_TYPE = "campaigns"
HOME_PAGE_CONTENT_TYPE = "home_page"

DEFAULT_HOME_TITLE = "Our Campaigns"
DEFAULT_HOME_SUBTITLE = (
    "Discover our active campaigns and unlock valuable resources to grow your "
    "business and enhance your skills."
)

# CMS modular block name -> form variant accepted by /api/submit-form
FORM_BLOCKS = {
    "subscribe_form": "subscribe",
    "detailed_registration_form": "detailed",
    "demo_request_form": "demo",
}


def normalize_slug(slug: str) -> str:
    return slug if slug.startswith("/") else f"/{slug}"


def campaign_form_type(campaign: Dict[str, Any]) -> str:
    """Form variant of the first configured block; ``subscribe`` when none matches."""
    block = (campaign.get("forms") or [{}])[0] or {}
    for block_name, form_type in FORM_BLOCKS.items():
        if block.get(block_name) is not None:
            return form_type
    return "subscribe"


class CampaignService:
    """Read side of campaign content.

    Fetch failures degrade to empty or default content; pages are rendered
    from whatever could be loaded.
    """

    def __init__(self, client: ContentstackClient, home_page_uid: str):
        self.client = client
        self.home_page_uid = home_page_uid

    async def list_campaigns(self) -> List[Dict[str, Any]]:
        try:
            return await self.client.get_entries(CAMPAIGNS_CONTENT_TYPE)
        except BaseAPIException as e:
            logger.error(f"Failed to fetch campaigns: {e.detail}")
            return []

    async def get_campaign_by_slug(self, slug: str) -> Optional[Dict[str, Any]]:
        try:
            entries = await self.client.get_entries(
                CAMPAIGNS_CONTENT_TYPE,
                query={"url": normalize_slug(slug)},
                include_reference=True,
            )
        except BaseAPIException as e:
            logger.error(f"Failed to fetch campaign {slug}: {e.detail}")
            return None
        return entries[0] if entries else None

    async def get_home_page(self) -> Dict[str, Any]:
        try:
            entry = await self.client.get_entry(HOME_PAGE_CONTENT_TYPE, self.home_page_uid)
        except BaseAPIException as e:
            logger.error(f"Failed to fetch home page content: {e.detail}")
            entry = None
        entry = entry or {}
        return {
            "title": entry.get("title") or DEFAULT_HOME_TITLE,
            "subtitle": entry.get("subtitle") or DEFAULT_HOME_SUBTITLE,
            "footer_links": (entry.get("footer") or {}).get("link") or [],
        }

    async def home_page_context(self) -> Dict[str, Any]:
        home, campaigns = await asyncio.gather(self.get_home_page(), self.list_campaigns())
        return {**home, "campaigns": campaigns}
