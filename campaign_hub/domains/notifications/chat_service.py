from __future__ import annotations

import logging
from typing import Any, Dict, List

from ...shared.clients.slack_client import SlackClient
from ...shared.exceptions import ValidationException
from ...shared.formatting import humanize_field, stringify_values
from .schemas import ChatNotificationRequest

logger = logging.getLogger(__name__)

_ROUTING_FIELDS = {"campaignId", "formType"}


def submitter_summary(form_data: Dict[str, str]) -> Dict[str, str]:
    first, last = form_data.get("first_name"), form_data.get("last_name")
    if form_data.get("name"):
        name = form_data["name"]
    elif first and last:
        name = f"{first} {last}"
    else:
        name = first or "Unknown"
    return {
        "name": name,
        "email": form_data.get("email") or form_data.get("work_email") or "No email provided",
        "company": form_data.get("company") or form_data.get("company_name") or "Not specified",
    }


def format_form_dump(form_data: Dict[str, str]) -> str:
    return "\n".join(
        f"*{humanize_field(key)}:* {value}"
        for key, value in form_data.items()
        if key not in _ROUTING_FIELDS
    )


def build_submission_blocks(request: ChatNotificationRequest) -> List[Dict[str, Any]]:
    form_data = stringify_values(request.form_data or {})
    who = submitter_summary(form_data)

    def field(label: str, value: str) -> Dict[str, str]:
        return {"type": "mrkdwn", "text": f"*{label}:*\n{value}"}

    return [
        {
            "type": "header",
            "text": {"type": "plain_text", "text": "New Campaign Form Submission", "emoji": True},
        },
        {
            "type": "section",
            "fields": [
                field("Campaign", request.campaign_title or "Campaign"),
                field("Submitted By", who["name"]),
                field("Email", who["email"]),
                field("Company", who["company"]),
            ],
        },
        {
            "type": "section",
            "fields": [
                field("Campaign UID", f"`{request.campaign_uid}`"),
                field("Campaign URL", request.campaign_url or request.campaign_uid),
            ],
        },
        {"type": "divider"},
        {
            "type": "section",
            "text": {"type": "mrkdwn", "text": f"*Submission Details:*\n{format_form_dump(form_data)}"},
        },
        {
            "type": "context",
            "elements": [{"type": "mrkdwn", "text": f"Submitted at: {request.submission_time or 'unknown'}"}],
        },
    ]


class ChatNotificationService:
    def __init__(self, slack: SlackClient):
        self.slack = slack

    async def notify_submission(self, request: ChatNotificationRequest) -> Dict[str, Any]:
        if not request.campaign_uid or request.form_data is None:
            raise ValidationException("Missing required fields: campaignUid, formData", field="campaignUid")

        data = await self.slack.post_message(
            text=f"New Form Submission: {request.campaign_title or 'Campaign'}",
            blocks=build_submission_blocks(request),
        )
        return {"message": "Slack notification sent", "messageId": data.get("ts")}
