from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, Optional

from celery import shared_task

from ...core.config import get_settings
from ...core.container import ServiceContainer
from .schemas import BroadcastRequest


logger = logging.getLogger(__name__)


async def _broadcast(request: BroadcastRequest) -> Dict[str, Any]:
    # a fresh container per run: motor and httpx clients are bound to this event loop
    container = ServiceContainer(get_settings())
    try:
        result = await container.push_service.broadcast(request)
        return result.model_dump(by_alias=True)
    finally:
        await container.aclose()


@shared_task(bind=True, name="campaign_hub.domains.push.tasks.broadcast_campaign_notification")
def broadcast_campaign_notification(
    self,
    campaign_id: str,
    title: str,
    body: str,
    url: Optional[str] = None,
    image_url: Optional[str] = None,
) -> Dict[str, Any]:
    """Fan a push notification out to a campaign's subscribers outside a request."""
    request = BroadcastRequest(
        campaign_id=campaign_id,
        title=title,
        body=body,
        url=url,
        image_url=image_url,
    )
    result = asyncio.run(_broadcast(request))
    logger.info(
        f"Broadcast for campaign {campaign_id}: sent={result['sent']} failed={result['failed']} "
        f"cleanedUp={result['cleanedUp']}"
    )
    return result
