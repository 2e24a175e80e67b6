from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request

from ...core.dependencies import get_subscription_service
from ...core.middleware import client_ip_from
from ...shared.responses import success_response
from .models import SubscriptionRequest
from .service import SubscriptionService


router = APIRouter(
    prefix="/api/subscribe-modal",
    tags=["subscriptions"],
    responses={
        400: {"description": "Missing or malformed fields"},
        500: {"description": "Server error"},
    },
)


@router.post(
    "",
    summary="Subscribe to a campaign",
    description="""
    Creates or updates the visitor's subscription to one campaign. Repeating
    the call with the same email and campaign updates the same record.

    Supplying `fcmToken` stores the device token and enables push
    notifications for this subscription.
    """,
)
async def subscribe(
    payload: SubscriptionRequest,
    request: Request,
    svc: SubscriptionService = Depends(get_subscription_service),
):
    result = await svc.subscribe(
        payload,
        ip_address=client_ip_from(request),
        user_agent=request.headers.get("user-agent", "unknown"),
    )
    return success_response(result.model_dump(by_alias=True, exclude={"success"}))


@router.get("", summary="Check whether an email is subscribed to a campaign")
async def check_subscription(
    email: Optional[str] = Query(default=None),
    campaign_id: Optional[str] = Query(default=None, alias="campaignId"),
    svc: SubscriptionService = Depends(get_subscription_service),
):
    result = await svc.check(email, campaign_id)
    return success_response(result.model_dump(by_alias=True))
