from __future__ import annotations

from fastapi import APIRouter, Depends

from ...core.dependencies import get_chat_service, get_email_service
from ...shared.responses import success_response
from .chat_service import ChatNotificationService
from .email_service import EmailNotificationService
from .schemas import ChatNotificationRequest, SendEmailRequest


router = APIRouter(
    prefix="/api",
    tags=["notifications"],
    responses={
        400: {"description": "Missing required fields"},
        500: {"description": "Server configuration error"},
        502: {"description": "Upstream provider failure"},
    },
)


@router.post(
    "/send-email",
    summary="Send the campaign confirmation email",
    description="Resolves the campaign's email template, fills `{{field}}` placeholders and sends it over SMTP.",
)
async def send_email(payload: SendEmailRequest, svc: EmailNotificationService = Depends(get_email_service)):
    result = await svc.send_campaign_email(payload)
    return success_response(result)


@router.post("/send-slack-notification", summary="Post a form submission to the team channel")
async def send_slack_notification(
    payload: ChatNotificationRequest,
    svc: ChatNotificationService = Depends(get_chat_service),
):
    result = await svc.notify_submission(payload)
    return success_response(result)
