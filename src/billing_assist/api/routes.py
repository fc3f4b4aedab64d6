"""Rotas HTTP (chat por sessão)."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field

from billing_assist.api.dependencies import get_orchestrator, get_settings
from billing_assist.application.orchestrator import SessionOrchestrator
from billing_assist.config.settings import Settings
from billing_assist.domain.models import ChatResponse
from billing_assist.observability.logging import get_logger, mask_session_id

logger = get_logger(__name__)

router = APIRouter()


class MessageIn(BaseModel):
    """Mensagem do usuário."""

    text: str = Field(default="", max_length=4096)


class LogoutOut(BaseModel):
    session_id: str
    logged_out: bool


@router.get("/health")
def health(settings: Settings = Depends(get_settings)) -> dict[str, str]:
    """Healthcheck simples para Cloud Run."""
    return {"status": "ok", "service": settings.service_name, "version": settings.version}


@router.post("/sessions/{session_id}/messages", response_model=ChatResponse)
async def post_message(
    session_id: str,
    body: MessageIn,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> ChatResponse:
    """Processa um turno da conversa."""
    logger.info("message_received", extra={"session_id": mask_session_id(session_id)})
    return await orchestrator.process_message(session_id, body.text)


@router.post("/sessions/{session_id}/logout", response_model=LogoutOut)
async def logout(
    session_id: str,
    orchestrator: SessionOrchestrator = Depends(get_orchestrator),
) -> LogoutOut:
    logged_out = await orchestrator.logout(session_id)
    return LogoutOut(session_id=session_id, logged_out=logged_out)
