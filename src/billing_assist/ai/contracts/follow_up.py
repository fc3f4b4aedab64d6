"""Contrato Pydantic para sugestões de próxima pergunta via LLM."""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class FollowUpSuggestion(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    question_id: str = Field(..., alias="questionId")
    suggested_question: str = Field(..., alias="suggestedQuestion")


class FollowUpOutput(BaseModel):
    """JSON devolvido pelo sugeridor de próximas perguntas."""

    model_config = ConfigDict(extra="ignore")

    suggestions: list[FollowUpSuggestion] = Field(default_factory=list)
    """0 a 2 sugestões (ids do catálogo)."""

    reasoning: str | None = None
