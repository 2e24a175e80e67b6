from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from ...core.logging_config import mask_token
from ...shared.exceptions import ValidationException
from .models import (
    CAMPAIGN_ID_PATTERN,
    DEVICE_TOKEN_PATTERN,
    EMAIL_PATTERN,
    SubscriberRecord,
    SubscriptionCheck,
    SubscriptionRequest,
    SubscriptionResult,
    normalize_email,
    subscriber_key,
)
from .repository import SubscriptionRepository

logger = logging.getLogger(__name__)


def validate_campaign_id(campaign_id: str) -> None:
    if not CAMPAIGN_ID_PATTERN.match(campaign_id):
        raise ValidationException("Invalid campaignId format", field="campaignId")


def validate_device_token(token: str) -> None:
    if not DEVICE_TOKEN_PATTERN.match(token):
        raise ValidationException("Invalid fcmToken format", field="fcmToken")


class SubscriptionService:
    """Per-device subscription intake.

    Writes are upserts keyed by normalized email (and campaign), so repeated
    submissions converge on the same two records.
    """

    def __init__(self, repo: SubscriptionRepository):
        self.repo = repo

    async def init(self) -> None:
        await self.repo.ensure_indexes()

    def _validate(self, request: SubscriptionRequest) -> None:
        missing = [
            alias for alias, value in (
                ("name", request.name),
                ("email", request.email),
                ("campaignId", request.campaign_id),
            )
            if not (value and value.strip())
        ]
        if missing:
            raise ValidationException(f"Missing required fields: {', '.join(missing)}", field=missing[0])
        if not EMAIL_PATTERN.match(request.email.strip()):
            raise ValidationException("Invalid email format", field="email")
        validate_campaign_id(request.campaign_id)
        if request.fcm_token:
            validate_device_token(request.fcm_token)

    async def subscribe(
        self,
        request: SubscriptionRequest,
        ip_address: str = "unknown",
        user_agent: str = "unknown",
    ) -> SubscriptionResult:
        self._validate(request)

        email = normalize_email(request.email)
        name = request.name.strip()
        campaign_id = request.campaign_id
        token = request.fcm_token or None
        now = datetime.now(timezone.utc)
        key = subscriber_key(email, campaign_id)

        fields: Dict[str, Any] = {
            "name": name,
            "email": email,
            "campaign_id": campaign_id,
            "campaign_title": request.campaign_title or "",
            "campaign_url": request.campaign_url or "",
            "updated_at": now,
            "ip_address": ip_address or "unknown",
            "user_agent": user_agent or "unknown",
            "notifications_enabled": bool(token),
        }
        if token:
            fields["fcm_token"] = token
            fields["fcm_token_updated_at"] = now

        created = await self.repo.upsert_subscriber(key, fields, submitted_at=now)
        await self.repo.merge_user_index(
            email=email,
            name=name,
            campaign_id=campaign_id,
            campaign_entry={
                "subscribed_at": now,
                "campaign_title": request.campaign_title or "",
                "campaign_url": request.campaign_url or "",
                "notifications_enabled": bool(token),
            },
            now=now,
            fcm_token=token,
        )

        logger.info(
            f"Subscription {'created' if created else 'updated'}: {key}",
            extra={"component": "subscriptions", "details": {"token": mask_token(token)}},
        )
        return SubscriptionResult(doc_id=key)

    async def check(self, email: Optional[str], campaign_id: Optional[str]) -> SubscriptionCheck:
        if not email or not campaign_id:
            raise ValidationException("Missing email or campaignId", field="email" if not email else "campaignId")
        validate_campaign_id(campaign_id)

        doc = await self.repo.get_subscriber(subscriber_key(email, campaign_id))
        if doc is None:
            return SubscriptionCheck(has_subscribed=False)
        return SubscriptionCheck(has_subscribed=True, data=SubscriberRecord.model_validate(doc).to_api())
