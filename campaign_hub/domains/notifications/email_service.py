from __future__ import annotations

import logging
import re
from typing import Any, Dict, Optional, Tuple

from markupsafe import escape

from ...core.config import Settings
from ...shared.clients.contentstack_client import ContentstackClient
from ...shared.clients.email_client import EmailClient
from ...shared.exceptions import NotFoundException, UpstreamError, ValidationException
from ...shared.formatting import stringify_values
from .schemas import EmailTemplate, SendEmailRequest

logger = logging.getLogger(__name__)

EMAIL_TEMPLATES_CONTENT_TYPE = "email_templates"

PLACEHOLDER_PATTERN = re.compile(r"\{\{\s*([A-Za-z0-9_]+)\s*\}\}")


def template_data(request: SendEmailRequest) -> Dict[str, str]:
    """Submission fields plus the ``name`` and ``email`` every template may use."""
    data = stringify_values(request.form_data)
    data["name"] = (
        request.recipient_name
        or data.get("name")
        or data.get("first_name")
        or "User"
    )
    data["email"] = request.recipient_email or ""
    return data


def _substitute(text: str, data: Dict[str, Any], escape_values: bool) -> str:
    def replace(match: re.Match) -> str:
        key = match.group(1)
        if key not in data:
            return match.group(0)
        value = "" if data[key] is None else str(data[key])
        return str(escape(value)) if escape_values else value

    return PLACEHOLDER_PATTERN.sub(replace, text or "")


def render_template(template: EmailTemplate, data: Dict[str, Any]) -> Tuple[str, str]:
    """Substitute ``{{field}}`` placeholders.

    Placeholders without a matching field, and any other brace syntax in the
    CMS-authored HTML, are left as written. Values are HTML-escaped in the
    body only.
    """
    subject = _substitute(template.title, data, escape_values=False)
    html = _substitute(template.template_body, data, escape_values=True)
    return subject, html


class EmailNotificationService:
    """Sends the campaign's confirmation email to a form submitter."""

    def __init__(self, content: ContentstackClient, email_client: EmailClient, settings: Settings):
        self.content = content
        self.email_client = email_client
        self.settings = settings

    async def resolve_template_uid(self, campaign_uid: str) -> Optional[str]:
        try:
            campaign = await self.content.get_entry("campaigns", campaign_uid)
        except UpstreamError as e:
            logger.error(f"Failed to fetch campaign {campaign_uid}: {e.detail}")
            return None
        references = (campaign or {}).get("email_template") or []
        if not references:
            return None
        return references[0].get("uid")

    async def get_template(self, template_uid: str) -> Optional[EmailTemplate]:
        try:
            entry = await self.content.get_entry(EMAIL_TEMPLATES_CONTENT_TYPE, template_uid)
        except UpstreamError as e:
            logger.error(f"Failed to fetch email template {template_uid}: {e.detail}")
            return None
        return EmailTemplate.model_validate(entry) if entry else None

    async def send_campaign_email(self, request: SendEmailRequest) -> Dict[str, Any]:
        if not request.campaign_uid or not request.recipient_email:
            raise ValidationException(
                "Missing required fields: campaignUid, recipientEmail",
                field="campaignUid" if not request.campaign_uid else "recipientEmail",
            )
        self.settings.require_smtp()

        template_uid = await self.resolve_template_uid(request.campaign_uid)
        if not template_uid:
            logger.info(f"No email template configured for campaign {request.campaign_uid}")
            return {"message": "No email template configured", "emailSent": False}

        template = await self.get_template(template_uid)
        if template is None:
            raise NotFoundException("Email template", template_uid)

        subject, html = render_template(template, template_data(request))
        result = await self.email_client.send(
            request.recipient_email,
            subject,
            html,
            from_email=template.from_email,
            from_name=template.from_name,
        )
        return {
            "message": "Email sent successfully",
            "messageId": result["messageId"],
            "emailSent": True,
        }
