from __future__ import annotations

from typing import Optional

from ..subscriptions.models import CamelModel


class BroadcastRequest(CamelModel):
    campaign_id: Optional[str] = None
    title: Optional[str] = None
    body: Optional[str] = None
    image_url: Optional[str] = None
    url: Optional[str] = None


class BroadcastResult(CamelModel):
    success: bool = True
    message: str
    total: int = 0
    sent: int = 0
    failed: int = 0
    cleaned_up: int = 0


class CampaignPushStats(CamelModel):
    campaign_id: str
    total_subscribers: int
    notification_enabled: int
    notification_disabled: int
