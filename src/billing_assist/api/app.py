"""Fábrica da aplicação FastAPI."""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from billing_assist.api.routes import router
from billing_assist.application.factories.orchestrator_factory import build_orchestrator
from billing_assist.application.orchestrator import SessionOrchestrator
from billing_assist.config.settings import Settings, get_settings
from billing_assist.observability.logging import configure_logging, get_logger
from billing_assist.observability.middleware import CorrelationIdMiddleware

logger = get_logger(__name__)


@asynccontextmanager
async def _lifespan(app: FastAPI) -> AsyncIterator[None]:
    yield
    # Emissões de handoff pendentes terminam antes do shutdown
    await app.state.orchestrator.handoff.drain()
    logger.info("handoff_emissions_drained")


def create_app(
    settings: Settings | None = None,
    orchestrator: SessionOrchestrator | None = None,
) -> FastAPI:
    """Cria a aplicação FastAPI."""
    settings = settings or get_settings()
    configure_logging(settings.log_level, settings.service_name)

    app = FastAPI(title=settings.service_name, version=settings.version, lifespan=_lifespan)
    app.add_middleware(CorrelationIdMiddleware)
    app.include_router(router)

    app.state.settings = settings
    app.state.orchestrator = orchestrator or build_orchestrator(settings)

    logger.info(
        "app_created",
        extra={"environment": settings.environment, "openai_enabled": settings.openai_enabled},
    )
    return app
