"""
FastAPI dependencies.

Each function hands a router the instance owned by the application's
``ServiceContainer``; tests swap the container or override these functions.
"""

from fastapi import Depends, Request
from fastapi.templating import Jinja2Templates

from .config import Settings
from .container import ServiceContainer
from ..shared.clients.push_client import PushClient
from ..domains.campaigns.service import CampaignService
from ..domains.forms.service import FormService
from ..domains.notifications.chat_service import ChatNotificationService
from ..domains.notifications.email_service import EmailNotificationService
from ..domains.push.service import PushService
from ..domains.subscriptions.service import SubscriptionService


def get_container(request: Request) -> ServiceContainer:
    return request.app.state.container


def get_settings_dep(container: ServiceContainer = Depends(get_container)) -> Settings:
    return container.settings


def get_templates(container: ServiceContainer = Depends(get_container)) -> Jinja2Templates:
    return container.templates


def get_campaign_service(container: ServiceContainer = Depends(get_container)) -> CampaignService:
    return container.campaign_service


def get_form_service(container: ServiceContainer = Depends(get_container)) -> FormService:
    return container.form_service


def get_email_service(container: ServiceContainer = Depends(get_container)) -> EmailNotificationService:
    return container.email_service


def get_chat_service(container: ServiceContainer = Depends(get_container)) -> ChatNotificationService:
    return container.chat_service


def get_subscription_service(container: ServiceContainer = Depends(get_container)) -> SubscriptionService:
    return container.subscription_service


def get_push_service(container: ServiceContainer = Depends(get_container)) -> PushService:
    return container.push_service


def get_push_client(container: ServiceContainer = Depends(get_container)) -> PushClient:
    return container.push_client
