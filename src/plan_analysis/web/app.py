"""FastAPI application factory."""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint

from plan_analysis.acquisition import ImageAcquirer
from plan_analysis.config import Settings
from plan_analysis.db import AnalysisStorage
from plan_analysis.invoker import ModelInvoker
from plan_analysis.locks import PropertyLockRegistry
from plan_analysis.logging import configure_logging, get_logger
from plan_analysis.service import PlanAnalysisService
from plan_analysis.utils.bucket_store import LocalBucketStore

logger = get_logger(__name__)


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Add security headers to all responses."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        response = await call_next(request)
        response.headers["X-Content-Type-Options"] = "nosniff"
        response.headers["Cache-Control"] = "no-store"
        return response


def build_service(settings: Settings, storage: AnalysisStorage) -> PlanAnalysisService:
    """Wire the pipeline components from settings."""
    acquirer = ImageAcquirer(
        LocalBucketStore(settings.bucket_root),
        bucket=settings.plan_bucket,
        public_base_url=settings.public_base_url,
        timeout=settings.image_fetch_timeout_seconds,
        max_bytes=settings.max_image_bytes,
    )
    invoker = ModelInvoker(
        settings.anthropic_api_key.get_secret_value(),
        primary_model=settings.primary_model,
        fallback_model=settings.fallback_model or None,
        max_tokens=settings.max_output_tokens,
        timeout=settings.model_timeout_seconds,
    )
    return PlanAnalysisService(
        acquirer,
        invoker,
        storage,
        PropertyLockRegistry(timeout=settings.lock_timeout_seconds),
    )


def create_app(
    settings: Settings | None = None,
    *,
    service: PlanAnalysisService | None = None,
    storage: AnalysisStorage | None = None,
    log_level: int = logging.INFO,
) -> FastAPI:
    """Create the FastAPI application.

    Args:
        settings: Service settings. Loaded from env if not provided.
        service: Pre-built pipeline (tests). Built from settings if not provided.
        storage: Record store the service uses. Built from settings if not provided.
        log_level: Minimum log level.
    """
    if settings is None:
        settings = Settings()

    configure_logging(json_output=settings.json_logs, level=log_level)

    if storage is None:
        storage = AnalysisStorage(settings.database_path)
    if service is None:
        if not settings.anthropic_api_key.get_secret_value():
            logger.warning("anthropic_api_key_missing")
        service = build_service(settings, storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        await storage.initialize()
        app.state.settings = settings
        app.state.storage = storage
        app.state.service = service
        logger.info(
            "web_server_started",
            primary_model=settings.primary_model,
            fallback_model=settings.fallback_model,
            bucket=settings.plan_bucket,
        )

        yield

        await service.close()
        await storage.close()
        logger.info("web_server_stopped")

    app = FastAPI(title="Plan Analysis", lifespan=lifespan)

    app.add_middleware(SecurityHeadersMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.get_cors_origins(),
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["authorization", "x-client-info", "apikey", "content-type"],
    )

    from plan_analysis.web.routes import router

    app.include_router(router)

    return app
