"""Contratos dos colaboradores externos (classificador e responders).

O núcleo consome apenas estas interfaces; implementações via LLM ou
determinísticas vivem em `billing_assist.ai`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from pydantic import BaseModel, Field

from billing_assist.domain.enums import QuestionCategory
from billing_assist.domain.models import AccountContext, ApprovalRequest, SuggestedAction

if TYPE_CHECKING:
    from billing_assist.domain.models import ConversationMessage


class QuestionClassification(BaseModel):
    """Resultado do classificador de intenção."""

    category: QuestionCategory
    confidence: float = Field(..., ge=0.0, le=1.0)
    requires_auth: bool = False
    question_type: str | None = None  # id do catálogo de perguntas verificadas
    reasoning: str = ""


class ResponderAnswer(BaseModel):
    """Resposta de um responder com sinal de resolução."""

    text: str
    resolved: bool = True


class AccountDataAnswer(ResponderAnswer):
    """Resposta do responder de conta; pode trazer aprovações pendentes."""

    pending_approvals: list[ApprovalRequest] = Field(default_factory=list)


class HandoffSummary(BaseModel):
    """Resumo estruturado para o atendente humano."""

    summary: str
    escalation_reason: str
    original_question: str
    suggested_department: str | None = None
    key_facts: list[str] = Field(default_factory=list)


class IntentClassifier(ABC):
    """Mapeia texto livre → categoria + confiança."""

    @abstractmethod
    async def classify(self, text: str) -> QuestionClassification:
        """Classifica a mensagem.

        Raises:
            ClassificationError: saída vazia/malformada do classificador
        """
        ...


class FaqResponder(ABC):
    """Responde perguntas gerais a partir da base de conhecimento."""

    @abstractmethod
    async def answer(self, text: str) -> ResponderAnswer: ...


class AccountDataResponder(ABC):
    """Responde perguntas sobre dados da conta de um cliente autenticado."""

    @abstractmethod
    async def open_session(
        self, customer_id: str, customer_name: str | None = None
    ) -> AccountContext:
        """Abre a sub-sessão de dados de conta para o cliente verificado."""
        ...

    @abstractmethod
    async def answer(self, text: str, account: AccountContext) -> AccountDataAnswer:
        """Responde a pergunta no contexto da sub-sessão.

        Raises:
            AccessInvalidatedError: sub-sessão expirada/revogada
        """
        ...

    @abstractmethod
    async def submit_approvals(
        self, account: AccountContext, decisions: dict[int, bool]
    ) -> AccountDataAnswer:
        """Devolve decisões (request_id → aprovado) e produz a próxima resposta."""
        ...

    @abstractmethod
    async def close_session(self, account: AccountContext) -> None: ...


class Summarizer(ABC):
    """Resume a conversa para o pacote de handoff."""

    @abstractmethod
    async def summarize(
        self, transcript: str, reason: str, current_request: str
    ) -> HandoffSummary:
        """Gera o resumo.

        Raises:
            SummarizationError: falha do resumidor
        """
        ...


class FollowUpAdvisor(ABC):
    """Sugere 0–2 próximas perguntas (best-effort)."""

    @abstractmethod
    async def suggest(
        self,
        history: list[ConversationMessage],
        category: QuestionCategory,
        is_authenticated: bool,
    ) -> list[SuggestedAction]: ...
