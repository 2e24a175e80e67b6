from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import firebase_admin
from firebase_admin import credentials, exceptions as firebase_exceptions, messaging

from ...core.config import Settings
from ...core.logging_config import mask_token
from ..exceptions import UpstreamError

logger = logging.getLogger(__name__)

FIREBASE_APP_NAME = "campaign-hub"

# Failure reasons after which a device token can never succeed again
REASON_NOT_REGISTERED = "not-registered"
REASON_INVALID_TOKEN = "invalid-registration-token"
REASON_INVALID_ARGUMENT = "invalid-argument"
PERMANENT_FAILURE_REASONS = frozenset({REASON_NOT_REGISTERED, REASON_INVALID_TOKEN, REASON_INVALID_ARGUMENT})


@dataclass
class TokenResult:
    token: str
    success: bool
    message_id: Optional[str] = None
    reason: Optional[str] = None
    error: Optional[str] = None

    @property
    def is_permanent_failure(self) -> bool:
        return not self.success and self.reason in PERMANENT_FAILURE_REASONS


@dataclass
class MulticastReport:
    results: List[TokenResult] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failure_count(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def invalid_tokens(self) -> List[str]:
        return [r.token for r in self.results if r.is_permanent_failure]


def failure_reason(exc: Optional[BaseException]) -> str:
    """Map an Admin SDK send exception to a stable failure reason."""
    if exc is None:
        return "unknown"
    if isinstance(exc, messaging.UnregisteredError):
        return REASON_NOT_REGISTERED
    if isinstance(exc, firebase_exceptions.InvalidArgumentError):
        if "registration token" in str(exc).lower():
            return REASON_INVALID_TOKEN
        return REASON_INVALID_ARGUMENT
    code = getattr(exc, "code", None)
    if code:
        return str(code).lower().replace("_", "-")
    return type(exc).__name__


class PushClient:
    """Firebase Cloud Messaging sender built on the Admin SDK.

    The Firebase app is initialized lazily on first send and reused for the
    lifetime of the process.
    """

    def __init__(self, settings: Settings):
        self.settings = settings
        self._app: Optional[firebase_admin.App] = None

    def _get_app(self) -> firebase_admin.App:
        if self._app is not None:
            return self._app
        try:
            self._app = firebase_admin.get_app(FIREBASE_APP_NAME)
        except ValueError:
            cred = credentials.Certificate(self.settings.firebase_credentials())
            self._app = firebase_admin.initialize_app(cred, name=FIREBASE_APP_NAME)
            logger.info(f"Firebase Admin SDK initialized for project {self._app.project_id}")
        return self._app

    def _absolute_link(self, url: str) -> Optional[str]:
        # webpush fcm_options.link must be an absolute https URL
        link = url if url.startswith("http") else f"{self.settings.app_url}{url if url.startswith('/') else '/' + url}"
        return link if link.startswith("https://") else None

    def build_message(
        self,
        tokens: List[str],
        title: str,
        body: str,
        data: Dict[str, str],
        image_url: Optional[str] = None,
        url: str = "/",
    ) -> messaging.MulticastMessage:
        link = self._absolute_link(url)
        return messaging.MulticastMessage(
            tokens=tokens,
            notification=messaging.Notification(title=title, body=body, image=image_url),
            data=data,
            webpush=messaging.WebpushConfig(
                notification=messaging.WebpushNotification(
                    title=title,
                    body=body,
                    icon=self.settings.push_icon,
                    badge=self.settings.push_badge,
                    image=image_url,
                ),
                fcm_options=messaging.WebpushFCMOptions(link=link) if link else None,
            ),
        )

    def _send_sync(self, message: messaging.MulticastMessage) -> messaging.BatchResponse:
        return messaging.send_each_for_multicast(message, app=self._get_app())

    async def send_multicast(
        self,
        tokens: List[str],
        title: str,
        body: str,
        data: Dict[str, str],
        image_url: Optional[str] = None,
        url: str = "/",
    ) -> MulticastReport:
        """Send one batched request and normalize per-token outcomes."""
        message = self.build_message(tokens, title, body, data, image_url=image_url, url=url)
        try:
            response = await asyncio.to_thread(self._send_sync, message)
        except firebase_exceptions.FirebaseError as e:
            logger.error(f"FCM multicast failed: {e.code}: {e}")
            raise UpstreamError("fcm", "Push service rejected the request", details={"code": str(e.code)})

        report = MulticastReport()
        for token, resp in zip(tokens, response.responses):
            if resp.success:
                report.results.append(TokenResult(token=token, success=True, message_id=resp.message_id))
                continue
            reason = failure_reason(resp.exception)
            logger.info(f"Push to {mask_token(token)} failed [{reason}]: {resp.exception}")
            report.results.append(
                TokenResult(token=token, success=False, reason=reason, error=str(resp.exception))
            )
        logger.info(f"Push multicast delivered {report.success_count}/{len(tokens)}")
        return report

    def describe(self) -> Dict[str, Any]:
        return {"initialized": self._app is not None, "appName": FIREBASE_APP_NAME}
