from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import HTMLResponse
from fastapi.templating import Jinja2Templates

from ...core.dependencies import get_campaign_service, get_form_service, get_settings_dep, get_templates
from ...core.config import Settings
from ...shared.exceptions import BaseAPIException, NotFoundException
from ...shared.responses import success_response
from ..forms.service import FormService
from ..push.device import page_script_context
from .service import CampaignService, campaign_form_type

logger = logging.getLogger(__name__)


api_router = APIRouter(
    prefix="/api/campaigns",
    tags=["campaigns"],
    responses={404: {"description": "Campaign not found"}},
)

pages_router = APIRouter(tags=["pages"], include_in_schema=False)


@api_router.get("", summary="List campaigns")
async def list_campaigns(svc: CampaignService = Depends(get_campaign_service)):
    campaigns = await svc.list_campaigns()
    return success_response({"campaigns": campaigns, "count": len(campaigns)})


@api_router.get("/{slug}", summary="Get campaign by URL slug")
async def get_campaign(slug: str, svc: CampaignService = Depends(get_campaign_service)):
    campaign = await svc.get_campaign_by_slug(slug)
    if campaign is None:
        raise NotFoundException("Campaign", slug)
    return success_response({"campaign": campaign, "formType": campaign_form_type(campaign)})


def _page_context(request: Request, settings: Settings, **context: Any) -> Dict[str, Any]:
    return {
        "request": request,
        "app_name": settings.app_name,
        **page_script_context(settings),
        **context,
    }


@pages_router.get("/", response_class=HTMLResponse)
async def home_page(
    request: Request,
    svc: CampaignService = Depends(get_campaign_service),
    templates: Jinja2Templates = Depends(get_templates),
    settings: Settings = Depends(get_settings_dep),
):
    context = await svc.home_page_context()
    return templates.TemplateResponse(request, "home.html", _page_context(request, settings, **context))


@pages_router.get("/submissions", response_class=HTMLResponse)
async def submissions_page(
    request: Request,
    campaign: Optional[str] = Query(default=None),
    campaign_svc: CampaignService = Depends(get_campaign_service),
    form_svc: FormService = Depends(get_form_service),
    templates: Jinja2Templates = Depends(get_templates),
    settings: Settings = Depends(get_settings_dep),
):
    """Operator view of stored submissions, optionally for one campaign."""
    campaigns = await campaign_svc.list_campaigns()
    error = None
    try:
        submissions = await form_svc.list_submissions(campaign)
    except BaseAPIException as e:
        logger.warning(f"Submissions page could not load entries: {e.detail}")
        submissions, error = [], e.detail
    context = _page_context(
        request,
        settings,
        campaigns=campaigns,
        selected_campaign=campaign,
        submissions=submissions,
        error=error,
    )
    return templates.TemplateResponse(request, "submissions.html", context)


@pages_router.get("/test-notifications", response_class=HTMLResponse)
async def push_check_page(
    request: Request,
    campaign_svc: CampaignService = Depends(get_campaign_service),
    templates: Jinja2Templates = Depends(get_templates),
    settings: Settings = Depends(get_settings_dep),
):
    """Browser push checks plus a form that broadcasts to a campaign."""
    campaigns = await campaign_svc.list_campaigns()
    context = _page_context(request, settings, campaigns=campaigns, diagnostics=settings.push_diagnostics())
    return templates.TemplateResponse(request, "test_notifications.html", context)


@pages_router.get("/{slug}", response_class=HTMLResponse)
async def campaign_page(
    slug: str,
    request: Request,
    svc: CampaignService = Depends(get_campaign_service),
    templates: Jinja2Templates = Depends(get_templates),
    settings: Settings = Depends(get_settings_dep),
):
    campaign = await svc.get_campaign_by_slug(slug)
    if campaign is None:
        return templates.TemplateResponse(
            request, "not_found.html", _page_context(request, settings, slug=slug), status_code=404
        )
    context = _page_context(
        request,
        settings,
        campaign=campaign,
        form_type=campaign_form_type(campaign),
    )
    return templates.TemplateResponse(request, "campaign.html", context)
