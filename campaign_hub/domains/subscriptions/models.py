from __future__ import annotations

import re
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
# Device tokens and campaign uids are used as document keys and field paths
DEVICE_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9_:\-]+$")
CAMPAIGN_ID_PATTERN = re.compile(r"^[A-Za-z0-9_\-]+$")

SUBSCRIBERS_COLLECTION = "campaign_subscriptions"
USER_INDEX_COLLECTION = "user_subscriptions"


def normalize_email(email: str) -> str:
    return email.strip().lower()


def subscriber_key(email: str, campaign_id: str) -> str:
    """Document id of the Subscriber Record for one (email, campaign)."""
    return f"{normalize_email(email)}_{campaign_id}"


class CamelModel(BaseModel):
    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class SubscriptionRequest(CamelModel):
    """Body of ``POST /api/subscribe-modal``.

    Required fields are checked by the service so that missing values are
    reported as a 400 with the same shape as other input errors.
    """
    name: Optional[str] = None
    email: Optional[str] = None
    campaign_id: Optional[str] = None
    campaign_title: Optional[str] = ""
    campaign_url: Optional[str] = ""
    fcm_token: Optional[str] = None


class SubscriberRecord(CamelModel):
    id: str = Field(alias="_id")
    name: str
    email: str
    campaign_id: str
    campaign_title: str = ""
    campaign_url: str = ""
    submitted_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    ip_address: str = "unknown"
    user_agent: str = "unknown"
    notifications_enabled: bool = False
    fcm_token: Optional[str] = None
    fcm_token_updated_at: Optional[datetime] = None
    token_removed_at: Optional[datetime] = None
    token_removed_reason: Optional[str] = None

    def to_api(self) -> Dict[str, Any]:
        data = self.model_dump(by_alias=True, exclude_none=True)
        data["id"] = data.pop("_id")
        return data


class SubscriptionResult(CamelModel):
    success: bool = True
    message: str = "Subscription successful"
    doc_id: str


class SubscriptionCheck(CamelModel):
    has_subscribed: bool
    data: Optional[Dict[str, Any]] = None
