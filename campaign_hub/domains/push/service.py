from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Optional

from pymongo.errors import PyMongoError

from ...shared.clients.push_client import PushClient
from ...shared.exceptions import ValidationException
from ..subscriptions.service import validate_campaign_id
from .repository import PushRepository
from .schemas import BroadcastRequest, BroadcastResult, CampaignPushStats

logger = logging.getLogger(__name__)


class PushService:
    """Campaign-wide web push fan-out.

    One multicast request per broadcast. Per-token failures are counted, not
    raised; tokens the push backend reports as permanently invalid are
    cleared from storage afterwards.
    """

    def __init__(self, repo: PushRepository, client: PushClient):
        self.repo = repo
        self.client = client

    async def broadcast(self, request: BroadcastRequest) -> BroadcastResult:
        missing = [
            alias for alias, value in (
                ("campaignId", request.campaign_id),
                ("title", request.title),
                ("body", request.body),
            )
            if not value
        ]
        if missing:
            raise ValidationException(f"Missing required fields: {', '.join(missing)}", field=missing[0])
        validate_campaign_id(request.campaign_id)

        tokens = await self.repo.enabled_tokens(request.campaign_id)
        if not tokens:
            logger.info(f"No enabled subscribers for campaign {request.campaign_id}")
            return BroadcastResult(message="No subscribers with notifications enabled for this campaign")

        url = request.url or "/"
        now = datetime.now(timezone.utc)
        report = await self.client.send_multicast(
            tokens,
            title=request.title,
            body=request.body,
            data={
                "campaignId": request.campaign_id,
                "url": url,
                "timestamp": now.isoformat().replace("+00:00", "Z"),
            },
            image_url=request.image_url,
            url=url,
        )

        cleaned_up = await self._cleanup(report.invalid_tokens, {r.token: r.reason for r in report.results}, now)
        return BroadcastResult(
            message="Notifications sent",
            total=len(tokens),
            sent=report.success_count,
            failed=report.failure_count,
            cleaned_up=cleaned_up,
        )

    async def _cleanup(self, invalid_tokens, reasons, now: datetime) -> int:
        if not invalid_tokens:
            return 0
        logger.info(f"Cleaning up {len(invalid_tokens)} invalid token(s)")
        try:
            await self.repo.remove_invalid_tokens({t: reasons[t] for t in invalid_tokens}, now)
        except PyMongoError as e:
            logger.error(f"Invalid token cleanup failed: {type(e).__name__}: {e}", exc_info=True)
            return 0
        return len(invalid_tokens)

    async def stats(self, campaign_id: Optional[str]) -> CampaignPushStats:
        if not campaign_id:
            raise ValidationException("Missing campaignId parameter", field="campaignId")
        validate_campaign_id(campaign_id)
        total, enabled = await self.repo.campaign_stats(campaign_id)
        return CampaignPushStats(
            campaign_id=campaign_id,
            total_subscribers=total,
            notification_enabled=enabled,
            notification_disabled=total - enabled,
        )
