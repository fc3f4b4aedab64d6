"""Contrato Pydantic para o resumo de handoff via LLM."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class SummaryOutput(BaseModel):
    """JSON devolvido pelo resumidor."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    summary: str = Field(..., min_length=1)
    """Resumo conciso para o atendente."""

    escalation_reason: str | None = Field(default=None, alias="escalationReason")
    """Motivo do escalonamento (o do orquestrador prevalece se ausente)."""

    original_question: str | None = Field(default=None, alias="originalQuestion")
    """Pergunta original do cliente."""

    suggested_department: str | None = Field(default=None, alias="suggestedDepartment")
    """Billing, Payments, Collections, Customer Service..."""

    key_facts: list[str] = Field(default_factory=list, alias="keyFacts")
    """Fatos relevantes levantados na conversa."""
