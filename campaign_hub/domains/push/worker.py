from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Protocol
from urllib.parse import urljoin

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Notification"
DEFAULT_TAG = "general"
DEFAULT_ICON = "/icon-192x192.png"
DEFAULT_BADGE = "/badge-72x72.png"

# page -> worker messages
MESSAGE_SKIP_WAITING = "SKIP_WAITING"
MESSAGE_FIREBASE_CONFIG = "FIREBASE_CONFIG"


@dataclass
class NotificationSpec:
    title: str
    body: str
    icon: str
    badge: str
    tag: str
    data: Dict[str, Any] = field(default_factory=dict)
    require_interaction: bool = False


class ClientWindow(Protocol):
    url: str

    async def focus(self) -> None: ...


class ClickedNotification(Protocol):
    data: Optional[Dict[str, Any]]

    def close(self) -> None: ...


class WorkerClients(Protocol):
    async def match_all(self) -> List[ClientWindow]: ...

    async def open_window(self, url: str) -> None: ...

    async def claim(self) -> None: ...


class BackgroundMessaging(Protocol):
    def on_background_message(self, handler: Callable[[Dict[str, Any]], Awaitable[None]]) -> None: ...


def background_notification(payload: Dict[str, Any], icon: str, badge: str) -> NotificationSpec:
    notification = payload.get("notification") or {}
    data = payload.get("data") or {}
    return NotificationSpec(
        title=notification.get("title") or DEFAULT_TITLE,
        body=notification.get("body") or "",
        icon=notification.get("icon") or icon,
        badge=badge,
        # same-campaign notifications replace each other
        tag=data.get("campaignId") or DEFAULT_TAG,
        data=data,
    )


class BackgroundWorker:
    """Lifecycle and event handling of the background delivery worker.

    Mirrors the served ``firebase-messaging-sw.js``: skip waiting on install,
    claim clients on activate, initialize messaging once on the first
    ``FIREBASE_CONFIG`` message.
    """

    def __init__(
        self,
        messaging_factory: Callable[[Dict[str, Any]], BackgroundMessaging],
        show_notification: Callable[[NotificationSpec], Awaitable[None]],
        clients: WorkerClients,
        origin: str,
        icon: str = DEFAULT_ICON,
        badge: str = DEFAULT_BADGE,
    ):
        self.messaging_factory = messaging_factory
        self.show_notification = show_notification
        self.clients = clients
        self.origin = origin
        self.icon = icon
        self.badge = badge
        self.messaging: Optional[BackgroundMessaging] = None
        self.skip_waiting_requested = False

    def on_install(self) -> None:
        self.skip_waiting_requested = True

    async def on_activate(self) -> None:
        await self.clients.claim()

    def on_message(self, message: Dict[str, Any]) -> None:
        kind = (message or {}).get("type")
        if kind == MESSAGE_SKIP_WAITING:
            self.skip_waiting_requested = True
        elif kind == MESSAGE_FIREBASE_CONFIG:
            if self.messaging is not None:
                logger.debug("Messaging already initialized")
                return
            self.messaging = self.messaging_factory(message.get("config") or {})
            self.messaging.on_background_message(self.on_background_message)

    async def on_background_message(self, payload: Dict[str, Any]) -> None:
        await self.show_notification(background_notification(payload, self.icon, self.badge))

    async def on_notification_click(self, notification: ClickedNotification) -> str:
        """Close the notification, then focus a window already at its URL or open one."""
        notification.close()
        target = urljoin(self.origin, (notification.data or {}).get("url") or "/")
        for window in await self.clients.match_all():
            if window.url == target:
                await window.focus()
                return "focused"
        await self.clients.open_window(target)
        return "opened"


def worker_script_context(settings) -> Dict[str, Any]:
    """Values the served ``firebase-messaging-sw.js`` is rendered with."""
    return {
        "sdk_version": settings.firebase_sdk_version,
        "default_title": DEFAULT_TITLE,
        "default_tag": DEFAULT_TAG,
        "default_icon": settings.push_icon,
        "default_badge": settings.push_badge,
        "message_skip_waiting": MESSAGE_SKIP_WAITING,
        "message_firebase_config": MESSAGE_FIREBASE_CONFIG,
    }
