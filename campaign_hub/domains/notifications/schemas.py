from __future__ import annotations

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field
from pydantic.alias_generators import to_camel


class SendEmailRequest(BaseModel):
    campaign_uid: Optional[str] = None
    recipient_email: Optional[str] = None
    recipient_name: Optional[str] = None
    form_data: Dict[str, Any] = Field(default_factory=dict)

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class ChatNotificationRequest(BaseModel):
    campaign_uid: Optional[str] = None
    campaign_title: Optional[str] = None
    campaign_url: Optional[str] = None
    form_data: Optional[Dict[str, Any]] = None
    submission_time: Optional[str] = None

    model_config = {"alias_generator": to_camel, "populate_by_name": True}


class EmailTemplate(BaseModel):
    """``email_templates`` CMS entry; ``title`` doubles as the subject line."""
    uid: Optional[str] = None
    title: str = ""
    template_body: str = ""
    from_email: Optional[str] = None
    from_name: Optional[str] = None
