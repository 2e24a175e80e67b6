from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter, validator

from ..subscriptions.models import EMAIL_PATTERN

# Keys that route the submission and are not part of the stored field map
ROUTING_KEYS = ("campaignId", "formType")


class FormBase(BaseModel):
    campaign_id: str = Field(alias="campaignId", min_length=1)
    campaign_title: Optional[str] = Field(default=None, alias="campaignTitle")
    campaign_url: Optional[str] = Field(default=None, alias="campaignUrl")
    name: str = Field(min_length=1)
    email: str

    model_config = {"populate_by_name": True, "extra": "allow", "str_strip_whitespace": True}

    @validator("email")
    def validate_email(cls, v):
        if not EMAIL_PATTERN.match(v):
            raise ValueError("Invalid email format")
        return v


class SubscribeForm(FormBase):
    form_type: Literal["subscribe"] = Field(alias="formType")


class DetailedRegistrationForm(FormBase):
    form_type: Literal["detailed"] = Field(alias="formType")
    last_name: str = Field(min_length=1)
    company: str = Field(min_length=1)
    job_title: str = Field(min_length=1)
    phone: Optional[str] = None
    company_size: str = Field(min_length=1)


class DemoRequestForm(FormBase):
    form_type: Literal["demo"] = Field(alias="formType")
    company: str = Field(min_length=1)
    job_title: str = Field(min_length=1)
    phone: str = Field(min_length=1)
    use_case: str = Field(min_length=1)
    company_size: str = Field(min_length=1)
    industry: str = Field(min_length=1)
    timeline: str = Field(min_length=1)
    additional_notes: Optional[str] = None


FormSubmission = Annotated[
    Union[SubscribeForm, DetailedRegistrationForm, DemoRequestForm],
    Field(discriminator="form_type"),
]

form_submission_adapter = TypeAdapter(FormSubmission)


def parse_form_submission(payload: Dict[str, Any]) -> Union[SubscribeForm, DetailedRegistrationForm, DemoRequestForm]:
    """Validate a raw submission against its variant; ``formType`` defaults to ``subscribe``."""
    payload = dict(payload)
    payload.setdefault("formType", "subscribe")
    return form_submission_adapter.validate_python(payload)


def submission_data(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Stored field map: everything the visitor sent except the routing keys."""
    return {key: value for key, value in payload.items() if key not in ROUTING_KEYS}


class SubmissionEntry(BaseModel):
    uid: str
    title: str
    campaign_id: Optional[str] = None
    data: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None

    model_config = {"extra": "ignore"}
