"""
Permission and device-token acquisition.

Runs wherever the page runs: the browser specifics (Notification API,
service-worker container, messaging SDK) sit behind ``BrowserRuntime`` so the
coordination below stays the same across front-ends and is testable.

Outcomes:
- a token string when permission is granted and the worker is active
- ``None`` when the visitor declines (a legitimate outcome, not an error)
- ``UnsupportedEnvironment`` / ``WorkerNotActive`` / ``MissingCredential``
"""

import asyncio
import logging
import time
from enum import Enum
from typing import Any, Dict, Optional, Protocol

from ...core.logging_config import mask_token
from . import foreground
from .worker import MESSAGE_FIREBASE_CONFIG, MESSAGE_SKIP_WAITING

logger = logging.getLogger(__name__)

WORKER_SCRIPT_URL = "/firebase-messaging-sw.js"
WORKER_SCOPE = "/"
ACTIVATION_TIMEOUT_SECONDS = 10.0


class UnsupportedEnvironment(Exception):
    """The runtime has no notification or background-worker support."""


class WorkerNotActive(Exception):
    """The background worker did not reach ``activated`` in time."""


class MissingCredential(Exception):
    """The public VAPID key is not configured."""


class Permission(str, Enum):
    DEFAULT = "default"
    GRANTED = "granted"
    DENIED = "denied"


class WorkerState(str, Enum):
    PARSED = "parsed"
    INSTALLING = "installing"
    INSTALLED = "installed"
    ACTIVATING = "activating"
    ACTIVATED = "activated"
    REDUNDANT = "redundant"


class WorkerHandle(Protocol):
    state: str

    async def next_state(self) -> str:
        """Resolve on the next ``statechange`` with the new state."""

    def post_message(self, message: Dict[str, Any]) -> None: ...


class WorkerRegistration(Protocol):
    installing: Optional[WorkerHandle]
    waiting: Optional[WorkerHandle]
    active: Optional[WorkerHandle]


class BrowserRuntime(Protocol):
    supports_notifications: bool
    supports_workers: bool

    def notification_permission(self) -> str: ...

    async def request_permission(self) -> str: ...

    async def get_registration(self, script_url: str) -> Optional[WorkerRegistration]: ...

    async def register_worker(self, script_url: str, scope: str) -> WorkerRegistration: ...

    async def get_token(self, vapid_key: str, registration: WorkerRegistration) -> Optional[str]: ...


def notification_status(runtime: Optional[BrowserRuntime]) -> Dict[str, Any]:
    if runtime is None or not runtime.supports_notifications:
        return {"supported": False, "permission": "unsupported"}
    return {"supported": True, "permission": runtime.notification_permission()}


class TokenAcquirer:
    """Permission prompt, worker activation and token exchange, in that order."""

    def __init__(
        self,
        runtime: BrowserRuntime,
        firebase_config: Dict[str, Optional[str]],
        vapid_key: Optional[str],
        activation_timeout: float = ACTIVATION_TIMEOUT_SECONDS,
    ):
        self.runtime = runtime
        self.firebase_config = firebase_config
        self.vapid_key = vapid_key
        self.activation_timeout = activation_timeout

    async def acquire(self) -> Optional[str]:
        if not (self.runtime.supports_notifications and self.runtime.supports_workers):
            raise UnsupportedEnvironment("Notifications or background workers are not supported")

        permission = self.runtime.notification_permission()
        if permission == Permission.DEFAULT:
            permission = await self.runtime.request_permission()
        if permission != Permission.GRANTED:
            logger.info(f"Notification permission not granted: {permission}")
            return None

        registration = await self._ensure_registration()
        active = await self._wait_until_active(registration)
        active.post_message({"type": MESSAGE_FIREBASE_CONFIG, "config": self.firebase_config})

        if not self.vapid_key:
            raise MissingCredential("VAPID key is not configured")

        token = await self.runtime.get_token(self.vapid_key, registration)
        if token:
            logger.info(f"Device token obtained: {mask_token(token)}")
        return token or None

    async def _ensure_registration(self) -> WorkerRegistration:
        registration = await self.runtime.get_registration(WORKER_SCRIPT_URL)
        if registration is None:
            registration = await self.runtime.register_worker(WORKER_SCRIPT_URL, WORKER_SCOPE)
            logger.debug("Background worker registered")
        return registration

    async def _wait_until_active(self, registration: WorkerRegistration) -> WorkerHandle:
        if registration.active is not None and registration.active.state == WorkerState.ACTIVATED:
            return registration.active

        worker = registration.waiting or registration.installing or registration.active
        if worker is None:
            raise WorkerNotActive("No background worker on the registration")
        if worker is registration.waiting:
            worker.post_message({"type": MESSAGE_SKIP_WAITING})

        deadline = time.monotonic() + self.activation_timeout
        state = worker.state
        while state != WorkerState.ACTIVATED:
            if state == WorkerState.REDUNDANT:
                raise WorkerNotActive("Background worker became redundant")
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise WorkerNotActive(f"Background worker stuck in '{state}'")
            try:
                state = await asyncio.wait_for(worker.next_state(), timeout=remaining)
            except asyncio.TimeoutError:
                raise WorkerNotActive(f"Background worker stuck in '{state}'")
        return worker


def page_script_context(settings) -> Dict[str, Any]:
    """Values the page-side push script in ``base.html`` is rendered with."""
    return {
        "firebase_config": settings.firebase_web_config(),
        "vapid_key": settings.firebase_vapid_key,
        "firebase_sdk_version": settings.firebase_sdk_version,
        "push_script": {
            "workerUrl": WORKER_SCRIPT_URL,
            "workerScope": WORKER_SCOPE,
            "activationTimeoutMs": int(ACTIVATION_TIMEOUT_SECONDS * 1000),
            "skipWaitingMessage": MESSAGE_SKIP_WAITING,
            "firebaseConfigMessage": MESSAGE_FIREBASE_CONFIG,
            "foregroundTitle": foreground.DEFAULT_TITLE,
            "foregroundTag": foreground.DEFAULT_TAG,
        },
    }
