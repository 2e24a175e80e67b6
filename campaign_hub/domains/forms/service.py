from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError

from ...core.config import Settings
from ...core.dispatch import BackgroundDispatcher
from ...shared.clients.contentstack_client import ContentstackClient
from ...shared.formatting import format_submission_time
from ..notifications.chat_service import ChatNotificationService
from ..notifications.email_service import EmailNotificationService
from ..notifications.schemas import ChatNotificationRequest, SendEmailRequest
from .schemas import SubmissionEntry, parse_form_submission, submission_data

logger = logging.getLogger(__name__)

FORM_SUBMISSIONS_CONTENT_TYPE = "form_submissions"


class FormService:
    """Form intake: persist to the CMS, then notify without blocking the caller."""

    def __init__(
        self,
        content: ContentstackClient,
        email_service: EmailNotificationService,
        chat_service: ChatNotificationService,
        dispatcher: BackgroundDispatcher,
        settings: Settings,
    ):
        self.content = content
        self.email_service = email_service
        self.chat_service = chat_service
        self.dispatcher = dispatcher
        self.settings = settings

    async def submit(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        try:
            form = parse_form_submission(payload)
        except ValidationError as e:
            raise RequestValidationError([{**err, "loc": ("body", *err["loc"])} for err in e.errors()])

        data = submission_data(payload)
        now = datetime.now(timezone.utc)
        entry = {
            "title": f"Submission - {format_submission_time(now)}",
            "campaign_id": form.campaign_id,
            "data": data,
            "locale": "en-us",
        }
        created = await self.content.create_entry(FORM_SUBMISSIONS_CONTENT_TYPE, entry)
        logger.info(
            f"Form submission stored for campaign {form.campaign_id}",
            extra={"component": "forms", "details": {"form_type": form.form_type}},
        )

        email_request = SendEmailRequest(
            campaign_uid=form.campaign_id,
            recipient_email=form.email,
            recipient_name=form.name or "User",
            form_data=data,
        )
        self.dispatcher.dispatch(
            f"send-email:{form.campaign_id}",
            lambda: self.email_service.send_campaign_email(email_request),
        )

        if self.settings.slack_notifications_enabled:
            chat_request = ChatNotificationRequest(
                campaign_uid=form.campaign_id,
                campaign_title=form.campaign_title or "Campaign",
                campaign_url=form.campaign_url or form.campaign_id,
                form_data=data,
                submission_time=format_submission_time(now, with_zone=True),
            )
            self.dispatcher.dispatch(
                f"send-slack:{form.campaign_id}",
                lambda: self.chat_service.notify_submission(chat_request),
            )

        return {"message": "Form submitted successfully", "data": created}

    async def list_submissions(self, campaign_id: Optional[str] = None) -> List[Dict[str, Any]]:
        query = {"campaign_id": campaign_id} if campaign_id else None
        entries = await self.content.list_management_entries(FORM_SUBMISSIONS_CONTENT_TYPE, query=query)
        return [SubmissionEntry.model_validate(entry).model_dump() for entry in entries]
