from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional, Protocol

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "New Notification"
DEFAULT_TAG = "notification"


@dataclass
class ForegroundNotice:
    title: str
    body: str = ""
    url: Optional[str] = None
    tag: str = DEFAULT_TAG
    data: Dict[str, Any] = field(default_factory=dict)


class MessageSource(Protocol):
    def on_message(self, handler: Callable[[Dict[str, Any]], None]) -> Callable[[], None]:
        """Register ``handler``; return a function that unregisters it."""


class Presenter(Protocol):
    def show_toast(self, notice: ForegroundNotice) -> None: ...

    def show_native(self, notice: ForegroundNotice, icon: str, badge: str) -> None: ...

    def navigate(self, url: str) -> None: ...


def notice_from_payload(payload: Dict[str, Any]) -> ForegroundNotice:
    notification = payload.get("notification") or {}
    data = payload.get("data") or {}
    return ForegroundNotice(
        title=notification.get("title") or DEFAULT_TITLE,
        body=notification.get("body") or "",
        url=data.get("url") or (payload.get("fcmOptions") or {}).get("link"),
        tag=data.get("campaignId") or DEFAULT_TAG,
        data=data,
    )


class ForegroundListener:
    """In-page presentation of messages that arrive while the page is open"""

    def __init__(
        self,
        source: MessageSource,
        presenter: Presenter,
        permission: Callable[[], str],
        icon: str = "/icon-192x192.png",
        badge: str = "/badge-72x72.png",
    ):
        self.source = source
        self.presenter = presenter
        self.permission = permission
        self.icon = icon
        self.badge = badge
        self._unsubscribe: Optional[Callable[[], None]] = None

    @property
    def subscribed(self) -> bool:
        return self._unsubscribe is not None

    def subscribe(self) -> None:
        if self._unsubscribe is None:
            self._unsubscribe = self.source.on_message(self.handle)

    def close(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    def handle(self, payload: Dict[str, Any]) -> ForegroundNotice:
        notice = notice_from_payload(payload)
        self.presenter.show_toast(notice)
        if self.permission() == "granted":
            self.presenter.show_native(notice, self.icon, self.badge)
        return notice

    def click(self, notice: ForegroundNotice) -> None:
        if notice.url:
            self.presenter.navigate(notice.url)
