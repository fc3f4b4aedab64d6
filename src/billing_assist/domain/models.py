"""Modelos de domínio trocados entre o núcleo e seus chamadores."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from billing_assist.domain.enums import MessageRole, QuestionCategory, RequiredAction


def utcnow() -> datetime:
    """Relógio único do domínio (UTC, timezone-aware)."""
    return datetime.now(tz=UTC)


class ConversationMessage(BaseModel):
    """Entrada do histórico (append-only)."""

    role: MessageRole
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class ApprovalRequest(BaseModel):
    """Pedido de confirmação humana para uma ferramenta sensível.

    Efêmero: existe só durante uma troca com o responder de dados de conta.
    `request_id` é monotônico por sub-sessão e correlaciona a decisão.
    """

    request_id: int
    tool_name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class SuggestedAction(BaseModel):
    """Sugestão de próxima pergunta (next-best-action)."""

    question_id: str
    suggested_question: str


class ChatResponse(BaseModel):
    """Resposta exposta ao front end (console/HTTP)."""

    message: str
    category: QuestionCategory | None = None
    required_action: RequiredAction = RequiredAction.NONE
    suggested_follow_ups: list[SuggestedAction] | None = None


class HandoffPackage(BaseModel):
    """Pacote de escalonamento para um atendente humano (write-once)."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    customer_id: str | None = None
    customer_name: str | None = None
    triggering_request: str
    escalation_reason: str
    summary: str
    suggested_department: str | None = None
    key_facts: tuple[str, ...] = ()
    conversation_duration: timedelta = timedelta(0)
    recommended_opening: str
    conversation_history: tuple[ConversationMessage, ...] = ()
    created_at: datetime = Field(default_factory=utcnow)

    def format_block(self) -> str:
        """Renderiza o pacote como bloco de texto para o console do atendente."""
        minutes = int(self.conversation_duration.total_seconds() // 60)
        seconds = int(self.conversation_duration.total_seconds() % 60)
        customer = (
            f"{self.customer_name} ({self.customer_id})"
            if self.customer_id
            else "Not authenticated"
        )
        lines = [
            "=" * 60,
            "HUMAN HANDOFF REQUEST",
            "=" * 60,
            f"Session:      {self.session_id}",
            f"Customer:     {customer}",
            f"Duration:     {minutes}m {seconds}s",
            f"Reason:       {self.escalation_reason}",
            f"Department:   {self.suggested_department or 'General'}",
            f"Request:      {self.triggering_request}",
            "",
            "Summary:",
            f"  {self.summary}",
        ]
        if self.key_facts:
            lines.append("")
            lines.append("Key facts:")
            lines.extend(f"  - {fact}" for fact in self.key_facts)
        lines.extend(
            [
                "",
                "Recommended opening:",
                f"  {self.recommended_opening}",
                "=" * 60,
            ]
        )
        return "\n".join(lines)


class AccountContext(BaseModel):
    """Handle da sub-sessão autenticada de dados de conta.

    Criado sob demanda na primeira consulta autenticada e destruído quando a
    autenticação é invalidada. `last_request_id` mantém a numeração dos
    pedidos de aprovação monotônica entre turnos.
    """

    sub_session_id: str
    customer_id: str
    customer_name: str | None = None
    opened_at: datetime = Field(default_factory=utcnow)
    last_request_id: int = 0

    def next_request_id(self) -> int:
        self.last_request_id += 1
        return self.last_request_id
