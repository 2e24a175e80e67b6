from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

import httpx

from ...core.config import Settings
from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)


SLACK_ERROR_GUIDANCE: Dict[str, str] = {
    "missing_scope": (
        "Missing Slack permissions. Required scopes: chat:write, chat:write.public. "
        "Add the scopes at https://api.slack.com/apps and reinstall the app."
    ),
    "not_in_channel": "Bot not in channel. Either add the chat:write.public scope or invite the bot: /invite @YourBotName",
    "invalid_auth": "Invalid Slack token. Check SLACK_BOT_TOKEN.",
    "channel_not_found": "Channel not found. Check SLACK_CHANNEL_ID (current: {channel}).",
}


def slack_error_message(error_code: Optional[str], channel: str) -> str:
    """Operator guidance for a ``chat.postMessage`` error code."""
    template = SLACK_ERROR_GUIDANCE.get(error_code or "")
    if template is None:
        return "Failed to send Slack notification"
    return template.format(channel=channel)


class SlackClient:
    """Minimal Slack Web API client (``chat.postMessage`` only)"""

    def __init__(self, settings: Settings, http: httpx.AsyncClient):
        self.settings = settings
        self.http = http

    async def post_message(
        self,
        text: str,
        blocks: Optional[List[Dict[str, Any]]] = None,
        channel: Optional[str] = None,
    ) -> Dict[str, Any]:
        self.settings.require_slack()
        channel = channel or self.settings.slack_channel_id

        try:
            response = await self.http.post(
                f"{self.settings.slack_api_url}/chat.postMessage",
                headers={"Authorization": f"Bearer {self.settings.slack_bot_token}"},
                json={"channel": channel, "text": text, "blocks": blocks or []},
            )
        except httpx.HTTPError as e:
            logger.error(f"Slack request failed: {type(e).__name__}: {e}")
            raise UpstreamError("slack", "Failed to send Slack notification")

        try:
            data = response.json()
        except ValueError:
            raise UpstreamError(
                "slack",
                "Failed to send Slack notification",
                upstream_status=response.status_code,
                details={"raw": response.text[:500]},
            )

        if not data.get("ok"):
            error_code = data.get("error")
            logger.error(f"Slack API error: {error_code}")
            raise UpstreamError(
                "slack",
                slack_error_message(error_code, channel),
                details={"slackError": error_code},
            )

        logger.info(f"Slack notification posted: {data.get('ts')}")
        return data
