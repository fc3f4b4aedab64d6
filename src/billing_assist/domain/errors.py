"""Taxonomia de erros do núcleo de orquestração.

Uso indevido do motor de verificação NÃO é exceção: retorna
`NextAction.ERROR` estruturado.
"""

from __future__ import annotations


class BillingAssistError(Exception):
    """Base para erros de domínio."""


class ClassificationError(BillingAssistError):
    """Classificador retornou saída vazia ou malformada."""


class ResponderError(BillingAssistError):
    """Responder (FAQ ou dados de conta) falhou ao produzir resposta."""


class AccessInvalidatedError(BillingAssistError):
    """Sub-sessão de dados de conta não é mais válida (expirada/revogada)."""


class SummarizationError(BillingAssistError):
    """Falha ao resumir a conversa para handoff."""


class ApprovalLoopLimitError(BillingAssistError):
    """Loop de aprovação excedeu o número máximo de iterações."""

    def __init__(self, iterations: int) -> None:
        super().__init__(f"Approval loop exceeded {iterations} iterations")
        self.iterations = iterations
