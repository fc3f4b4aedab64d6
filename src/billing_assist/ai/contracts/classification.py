"""Contrato Pydantic para a saída do classificador via LLM."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from billing_assist.domain.enums import QuestionCategory


class ClassifierOutput(BaseModel):
    """JSON devolvido pelo classificador (chaves camelCase ou snake_case)."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    category: QuestionCategory
    """Categoria da pergunta."""

    confidence: float = Field(..., ge=0.0, le=1.0)
    """Confiança do classificador (0.0 a 1.0)."""

    requires_auth: bool = Field(default=False, alias="requiresAuth")
    """True se a resposta depende de dados da conta."""

    question_type: str | None = Field(default=None, alias="questionType")
    """Id do catálogo de perguntas verificadas (se houver)."""

    reasoning: str = ""
    """Justificativa da classificação (debug)."""
