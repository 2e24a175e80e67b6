from __future__ import annotations

from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, Query

from ...core.dependencies import get_form_service
from ...shared.responses import success_response
from .service import FormService


router = APIRouter(
    prefix="/api",
    tags=["forms"],
    responses={
        422: {"description": "Form fields failed validation"},
        500: {"description": "Server configuration error"},
    },
)


@router.post(
    "/submit-form",
    summary="Submit a campaign form",
    description="""
    Stores the submission in the CMS and schedules the confirmation email
    (and, when enabled, the team chat message). The response does not wait
    for either notification.

    `formType` selects the field schema: `subscribe`, `detailed` or `demo`.
    """,
)
async def submit_form(
    payload: Dict[str, Any] = Body(..., examples=[{
        "campaignId": "blt0c1d2e3f",
        "formType": "subscribe",
        "name": "Ana",
        "email": "ana@example.com",
    }]),
    svc: FormService = Depends(get_form_service),
):
    result = await svc.submit(payload)
    return success_response(result)


@router.get("/get-submissions", summary="List stored form submissions")
async def get_submissions(
    campaign: Optional[str] = Query(default=None, description="Filter by campaign uid"),
    svc: FormService = Depends(get_form_service),
):
    submissions = await svc.list_submissions(campaign)
    return success_response({"submissions": submissions, "count": len(submissions)})
