from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.templating import Jinja2Templates

from ...core.config import Settings
from ...core.dependencies import get_push_client, get_push_service, get_settings_dep, get_templates
from ...shared.clients.push_client import PushClient
from ...shared.responses import success_response
from .schemas import BroadcastRequest
from .service import PushService
from .worker import worker_script_context


router = APIRouter(
    prefix="/api",
    tags=["push"],
    responses={
        400: {"description": "Missing required fields"},
        500: {"description": "Server configuration error"},
    },
)

worker_router = APIRouter(include_in_schema=False)


@router.post(
    "/send-notification",
    summary="Send a web push to every enabled subscriber of a campaign",
    description="""
    Sends one multicast request to all enabled device tokens of the campaign.
    Tokens rejected as permanently invalid are removed from storage.

    **Response:** `{sent, failed, total, cleanedUp}`
    """,
)
async def send_notification(payload: BroadcastRequest, svc: PushService = Depends(get_push_service)):
    result = await svc.broadcast(payload)
    return success_response(result.model_dump(by_alias=True))


@router.get("/send-notification", summary="Subscriber counts for a campaign")
async def notification_stats(
    campaign_id: Optional[str] = Query(default=None, alias="campaignId"),
    svc: PushService = Depends(get_push_service),
):
    stats = await svc.stats(campaign_id)
    return success_response(stats.model_dump(by_alias=True))


@router.get("/push/diagnostics", summary="Push credential presence check")
async def push_diagnostics(
    settings: Settings = Depends(get_settings_dep),
    client: PushClient = Depends(get_push_client),
):
    return success_response({
        "message": "Environment variables check",
        "env": settings.push_diagnostics(),
        "sender": client.describe(),
    })


@worker_router.get("/firebase-messaging-sw.js")
async def messaging_worker_script(
    request: Request,
    settings: Settings = Depends(get_settings_dep),
    templates: Jinja2Templates = Depends(get_templates),
):
    return templates.TemplateResponse(
        request,
        "push/firebase-messaging-sw.js",
        worker_script_context(settings),
        media_type="application/javascript",
        headers={"Service-Worker-Allowed": "/", "Cache-Control": "no-cache"},
    )
