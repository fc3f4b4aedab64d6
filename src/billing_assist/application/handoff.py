"""Escalonamento para atendente humano (montagem e emissão do handoff).

Passos: transcrição plana → Summarizer → duração → HandoffPackage →
emissão fire-and-forget → reconhecimento fixo ao usuário.
Falha do resumidor cai em pacote mínimo; falha do sink só é logada.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from billing_assist.domain.enums import RequiredAction
from billing_assist.domain.models import ChatResponse, HandoffPackage, utcnow
from billing_assist.domain.protocols.responders import HandoffSummary
from billing_assist.observability.logging import get_logger, log_fallback, mask_session_id

if TYPE_CHECKING:
    from billing_assist.application.session import ChatSession
    from billing_assist.domain.protocols import HandoffSink, Summarizer

logger: logging.Logger = get_logger(__name__)

HANDOFF_ACKNOWLEDGEMENT = (
    "I've forwarded your request to a customer service representative. "
    "They'll reach out to you shortly to assist with your inquiry. "
    "Is there anything else I can help you with in the meantime?"
)

# Motivos de escalonamento usados pelo orquestrador
REASON_OUTSIDE_FAQ = "Question outside FAQ knowledge base"
REASON_ACCOUNT_UNRESOLVED = "Account question outside agent capabilities"
REASON_SERVICE_REQUEST = "Service request requiring human assistance"
REASON_HUMAN_REQUESTED = "Customer explicitly requested human agent"
REASON_LOCKED_OUT = "Identity verification locked out"


def recommended_opening(customer_name: str | None, original_question: str) -> str:
    """Frase sugerida para o atendente abrir o contato."""
    greeting = f"Hello {customer_name}," if customer_name else "Hello,"
    return (
        f"{greeting} I'm following up on your recent chat with our virtual assistant. "
        f"I understand you need help with: {original_question}"
    )


class HandoffAssembler:
    """Monta e emite pacotes de handoff."""

    def __init__(
        self,
        sink: HandoffSink,
        summarizer: Summarizer | None = None,
    ) -> None:
        self._sink = sink
        self._summarizer = summarizer
        self._pending: set[asyncio.Task[None]] = set()

    async def escalate(
        self, session: ChatSession, triggering_text: str, reason: str
    ) -> ChatResponse:
        """Escala e devolve o reconhecimento fixo (conversa continua)."""
        await self.hand_off(session, triggering_text, reason)
        return ChatResponse(
            message=HANDOFF_ACKNOWLEDGEMENT,
            category=None,
            required_action=RequiredAction.NONE,
        )

    async def hand_off(
        self, session: ChatSession, triggering_text: str, reason: str
    ) -> HandoffPackage:
        """Monta o pacote e agenda a emissão sem bloquear o turno."""
        summary = await self._summarize(session, triggering_text, reason)
        package = self.assemble(session, triggering_text, summary)
        self._schedule_emit(package)
        logger.info(
            "handoff_assembled",
            extra={
                "session_id": mask_session_id(session.session_id),
                "reason": summary.escalation_reason,
                "department": summary.suggested_department,
            },
        )
        return package

    def assemble(
        self, session: ChatSession, triggering_text: str, summary: HandoffSummary
    ) -> HandoffPackage:
        history = tuple(m.model_copy() for m in session.conversation_history)
        now = utcnow()
        duration = now - history[0].timestamp if history else timedelta(0)
        context = session.user_context
        return HandoffPackage(
            session_id=session.session_id,
            customer_id=context.customer_id,
            customer_name=context.customer_name,
            triggering_request=triggering_text,
            escalation_reason=summary.escalation_reason,
            summary=summary.summary,
            suggested_department=summary.suggested_department,
            key_facts=tuple(summary.key_facts),
            conversation_duration=max(duration, timedelta(0)),
            recommended_opening=recommended_opening(
                context.customer_name, summary.original_question or triggering_text
            ),
            conversation_history=history,
            created_at=now,
        )

    async def drain(self) -> None:
        """Aguarda emissões pendentes (shutdown e testes)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    async def _summarize(
        self, session: ChatSession, triggering_text: str, reason: str
    ) -> HandoffSummary:
        if self._summarizer is not None:
            try:
                return await self._summarizer.summarize(
                    session.transcript(), reason, triggering_text
                )
            except Exception as e:
                logger.warning(
                    "handoff_summary_failed",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )
                log_fallback(logger, "summarizer", reason="summarization_error")
        return fallback_summary(triggering_text, reason)

    def _schedule_emit(self, package: HandoffPackage) -> None:
        task = asyncio.create_task(self._emit(package))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _emit(self, package: HandoffPackage) -> None:
        try:
            await self._sink.emit(package)
        except Exception as e:
            logger.error(
                "handoff_emit_failed",
                extra={
                    "session_id": mask_session_id(package.session_id),
                    "error": str(e),
                    "error_type": type(e).__name__,
                },
            )


def fallback_summary(triggering_text: str, reason: str) -> HandoffSummary:
    """Pacote mínimo quando não há resumo gerado."""
    return HandoffSummary(
        summary=f"{reason}. Customer request: {triggering_text}",
        escalation_reason=reason,
        original_question=triggering_text,
        suggested_department=None,
        key_facts=[],
    )
