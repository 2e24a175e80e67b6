from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from starlette.exceptions import HTTPException as StarletteHTTPException
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Optional
import logging
import uvicorn

from .core.config import Settings, get_settings
from .core.container import ServiceContainer
from .core.logging_config import setup_logging
from .core.middleware import RequestContextMiddleware
from .domains.campaigns.router import api_router as campaigns_api_router, pages_router
from .domains.forms.router import router as forms_router
from .domains.notifications.router import router as notifications_router
from .domains.push.router import router as push_router, worker_router
from .domains.subscriptions.router import router as subscriptions_router
from .shared.exceptions.handlers import (
    base_api_exception_handler,
    http_exception_handler,
    validation_exception_handler,
    general_exception_handler
)
from .shared.exceptions.custom_exceptions import BaseAPIException

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the service container on startup, release it on shutdown."""
    logger.info("Starting campaign hub...")

    container = getattr(app.state, "container", None)
    if container is None:
        container = ServiceContainer(app.state.settings)
        app.state.container = container
    await container.startup()

    logger.info("Campaign hub started")

    yield

    logger.info("Shutting down campaign hub...")
    await container.aclose()
    logger.info("Campaign hub stopped")


def create_app(settings: Optional[Settings] = None, container: Optional[ServiceContainer] = None) -> FastAPI:
    settings = settings or get_settings()
    setup_logging(settings.log_level, json_output=settings.log_json)

    app = FastAPI(
        title="Campaign Hub",
        description="""
        Campaign landing pages backed by Contentstack, form intake with email
        and chat notifications, and campaign web push subscriptions.
        """,
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.settings = settings
    if container is not None:
        app.state.container = container

    app.add_middleware(RequestContextMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # most specific first
    app.add_exception_handler(BaseAPIException, base_api_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, general_exception_handler)

    app.include_router(campaigns_api_router)
    app.include_router(forms_router)
    app.include_router(notifications_router)
    app.include_router(subscriptions_router)
    app.include_router(push_router)
    app.include_router(worker_router)

    @app.get(
        "/health",
        tags=["system"],
        summary="Service health",
        description="Liveness plus a cached database ping.",
    )
    async def health_check():
        state = await app.state.container.health()
        return {
            "status": "healthy" if state["database"] == "connected" else "degraded",
            "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            **state,
            "version": "1.0.0",
        }

    # catch-all slug route goes last
    app.include_router(pages_router)
    return app


def run() -> None:
    settings = get_settings()
    uvicorn.run(
        "campaign_hub.main:create_app",
        factory=True,
        host=settings.app_host,
        port=settings.app_port,
        reload=settings.debug,
        log_level=settings.log_level.lower()
    )


if __name__ == "__main__":
    run()
