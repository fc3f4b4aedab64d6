"""Contratos consumidos pelo motor de verificação de identidade."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field

from billing_assist.domain.verification.states import VerificationFactor

if TYPE_CHECKING:
    from billing_assist.domain.verification.models import VerificationState


class IdentityLookup(BaseModel):
    """Resultado da busca de cliente por identificador."""

    found: bool
    customer_id: str | None = None
    customer_name: str | None = None


class FactorCheck(BaseModel):
    """Resultado da conferência de um fator de conhecimento."""

    correct: bool
    customer_found: bool = True


class ToolSpec(BaseModel):
    """Ferramenta oferecida ao seletor de ferramentas."""

    name: str
    description: str
    parameters: dict[str, Any] = Field(default_factory=dict)  # JSON schema


class ToolCall(BaseModel):
    """Chamada de ferramenta escolhida pelo seletor."""

    name: str
    arguments: dict[str, Any] = Field(default_factory=dict)


class IdentityDirectory(ABC):
    """Sistema de registro dos clientes (lookup + conferência de fatores)."""

    @abstractmethod
    async def lookup_identity(self, identifier: str) -> IdentityLookup: ...

    @abstractmethod
    async def verify_factor(
        self, factor: VerificationFactor, answer: str, identifier: str
    ) -> FactorCheck: ...


class VerificationToolSelector(ABC):
    """Escolhe qual ferramenta de verificação aplicar à mensagem do usuário.

    Retornar None significa "não foi possível resolver a ferramenta", o que
    o motor trata como ausência de progresso.
    """

    @abstractmethod
    async def select(
        self, text: str, state: VerificationState, tools: list[ToolSpec]
    ) -> ToolCall | None: ...
