from typing import Dict, List, Optional
import json

from pydantic import Field, validator
from pydantic_settings import BaseSettings

from ..shared.exceptions.custom_exceptions import ConfigurationError


class Settings(BaseSettings):
    # App Settings
    app_name: str = "campaign-hub"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    debug: bool = False
    app_url: str = Field(default="http://localhost:3000", description="Public base URL used for links and internal calls")

    # Logging
    log_level: str = "INFO"
    log_json: bool = Field(default=True, description="Emit structured JSON log lines")

    # Database
    mongodb_url: str = Field(default="mongodb://localhost:27017", description="MongoDB connection URL")
    database_name: str = Field(default="campaign_hub", min_length=1, description="MongoDB database name")
    mongodb_transactions: bool = Field(default=True, description="Wrap token cleanup in a multi-document transaction (requires a replica set)")

    # Contentstack
    contentstack_api_key: Optional[str] = None
    contentstack_delivery_token: Optional[str] = None
    contentstack_management_token: Optional[str] = None
    contentstack_environment: str = "production"
    contentstack_cdn_url: str = "https://cdn.contentstack.io/v3"
    contentstack_management_url: str = "https://api.contentstack.io/v3"
    contentstack_home_page_uid: str = "bltf843a91b5e0e0393"
    content_revalidate_seconds: int = Field(default=60, gt=0, le=3600, description="Content cache revalidation window")

    # Outbound HTTP
    http_timeout_seconds: float = Field(default=10.0, gt=0, le=120, description="Timeout for every outbound HTTP call")

    # SMTP relay
    smtp_host: Optional[str] = None
    smtp_port: Optional[int] = None
    smtp_user: Optional[str] = None
    smtp_password: Optional[str] = None
    smtp_timeout_seconds: float = Field(default=15.0, gt=0, le=120)

    # Slack
    slack_bot_token: Optional[str] = None
    slack_channel_id: str = "C0A5R60BKNX"
    slack_api_url: str = "https://slack.com/api"
    slack_notifications_enabled: bool = Field(default=False, description="Post a chat message for every form submission")

    # Firebase
    firebase_service_account: Optional[str] = Field(default=None, description="Service account JSON document")
    firebase_project_id: Optional[str] = None
    firebase_client_email: Optional[str] = None
    firebase_private_key: Optional[str] = None
    firebase_vapid_key: Optional[str] = None
    firebase_api_key: Optional[str] = None
    firebase_auth_domain: Optional[str] = None
    firebase_storage_bucket: Optional[str] = None
    firebase_messaging_sender_id: Optional[str] = None
    firebase_app_id: Optional[str] = None
    firebase_sdk_version: str = "10.7.1"

    # Push presentation
    push_icon: str = "/icon-192x192.png"
    push_badge: str = "/badge-72x72.png"

    # Celery
    celery_broker_url: str = "redis://localhost:6379/0"
    celery_result_backend: str = "redis://localhost:6379/1"

    # Frontend CORS
    allowed_origins: List[str] = Field(
        default_factory=lambda: ["http://localhost:3000", "http://127.0.0.1:3000"],
        description="Allowed CORS origins"
    )

    @validator("log_level")
    def validate_log_level(cls, v):
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @validator("firebase_private_key")
    def unescape_private_key(cls, v):
        # keys pasted into .env files carry literal "\n" sequences
        if v:
            return v.replace("\\n", "\n")
        return v

    @validator("app_url")
    def strip_trailing_slash(cls, v):
        return v.rstrip("/")

    def _require(self, feature: str, names: List[str]) -> None:
        missing = [name.upper() for name in names if not getattr(self, name)]
        if missing:
            raise ConfigurationError(feature=feature, missing=missing)

    def require_content_delivery(self) -> None:
        self._require("content delivery", ["contentstack_api_key", "contentstack_delivery_token"])

    def require_content_management(self) -> None:
        self._require("content management", ["contentstack_api_key", "contentstack_management_token"])

    def require_smtp(self) -> None:
        self._require("email", ["smtp_host", "smtp_port", "smtp_user", "smtp_password"])

    def require_slack(self) -> None:
        self._require("chat", ["slack_bot_token"])

    def require_vapid_key(self) -> None:
        self._require("web push", ["firebase_vapid_key"])

    def firebase_credentials(self) -> Dict[str, str]:
        """Service account mapping for the Admin SDK.

        Prefers the full JSON document; falls back to the three individual
        variables and reports which of them are absent.
        """
        if self.firebase_service_account:
            try:
                return json.loads(self.firebase_service_account)
            except json.JSONDecodeError as e:
                raise ConfigurationError(
                    feature="push delivery",
                    missing=["FIREBASE_SERVICE_ACCOUNT"],
                    message=f"FIREBASE_SERVICE_ACCOUNT is not valid JSON: {e.msg}",
                )
        self._require("push delivery", ["firebase_project_id", "firebase_client_email", "firebase_private_key"])
        return {
            "type": "service_account",
            "project_id": self.firebase_project_id,
            "client_email": self.firebase_client_email,
            "private_key": self.firebase_private_key,
            "token_uri": "https://oauth2.googleapis.com/token",
        }

    def firebase_web_config(self) -> Dict[str, Optional[str]]:
        """Public web-app config handed to the background worker."""
        return {
            "apiKey": self.firebase_api_key,
            "authDomain": self.firebase_auth_domain,
            "projectId": self.firebase_project_id,
            "storageBucket": self.firebase_storage_bucket,
            "messagingSenderId": self.firebase_messaging_sender_id,
            "appId": self.firebase_app_id,
        }

    def push_diagnostics(self) -> Dict[str, object]:
        return {
            "hasProjectId": bool(self.firebase_project_id),
            "hasClientEmail": bool(self.firebase_client_email),
            "hasPrivateKey": bool(self.firebase_private_key),
            "hasServiceAccount": bool(self.firebase_service_account),
            "hasVapidKey": bool(self.firebase_vapid_key),
            "projectId": self.firebase_project_id or "NOT SET",
            "clientEmail": (self.firebase_client_email[:20] + "...") if self.firebase_client_email else "NOT SET",
            "privateKeyPreview": f"SET (length: {len(self.firebase_private_key)})" if self.firebase_private_key else "NOT SET",
        }

    class Config:
        env_file = ".env"
        case_sensitive = False
        extra = "ignore"


def get_settings() -> Settings:
    return Settings()
