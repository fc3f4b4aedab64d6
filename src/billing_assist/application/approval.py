"""Loop de aprovação (confirm-before-execute) para ferramentas sensíveis.

Enquanto a resposta do responder de conta trouxer pedidos de aprovação:
1. formata um prompt legível por pedido (formatador específico por
   ferramenta, com fallback genérico)
2. obtém a decisão do ApprovalHandler (texto livre → bool)
3. devolve as decisões ao responder, correlacionadas por request_id
O número de iterações é limitado; exceder o limite é erro.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any

from billing_assist.domain.errors import ApprovalLoopLimitError
from billing_assist.observability.logging import get_logger, log_fallback

if TYPE_CHECKING:
    from billing_assist.domain.models import AccountContext, ApprovalRequest
    from billing_assist.domain.protocols import (
        AccountDataAnswer,
        AccountDataResponder,
        ApprovalHandler,
    )

logger: logging.Logger = get_logger(__name__)

PromptFormatter = Callable[[dict[str, Any]], str | None]


def format_make_payment(arguments: dict[str, Any]) -> str | None:
    """Prompt de pagamento; None se os argumentos não forem reconhecidos."""
    try:
        amount = float(arguments["amount"])
    except (KeyError, TypeError, ValueError):
        return None
    period = arguments.get("billing_period") or "your current bill"
    return f"I'm about to submit a payment of ${amount:.2f} for {period}. Should I proceed?"


def format_generic(tool_name: str) -> str:
    return f"I need your approval to proceed with {tool_name}. Should I continue?"


DEFAULT_FORMATTERS: dict[str, PromptFormatter] = {
    "make_payment": format_make_payment,
}


class ApprovalLoopController:
    """Media a confirmação humana de ferramentas sensíveis."""

    def __init__(
        self,
        responder: AccountDataResponder,
        handler: ApprovalHandler,
        max_iterations: int = 5,
        formatters: dict[str, PromptFormatter] | None = None,
    ) -> None:
        self._responder = responder
        self._handler = handler
        self._max_iterations = max_iterations
        self._formatters = dict(DEFAULT_FORMATTERS)
        if formatters:
            self._formatters.update(formatters)

    def register_formatter(self, tool_name: str, formatter: PromptFormatter) -> None:
        self._formatters[tool_name] = formatter

    def format_prompt(self, request: ApprovalRequest) -> str:
        formatter = self._formatters.get(request.tool_name)
        if formatter is not None:
            prompt = formatter(request.arguments)
            if prompt:
                return prompt
        return format_generic(request.tool_name)

    async def run(
        self, account: AccountContext, initial: AccountDataAnswer
    ) -> AccountDataAnswer:
        """Executa o loop até não haver pedidos pendentes."""
        response = initial
        iterations = 0
        while response.pending_approvals:
            if iterations >= self._max_iterations:
                logger.error(
                    "approval_loop_limit_exceeded",
                    extra={"iterations": iterations},
                )
                raise ApprovalLoopLimitError(iterations)
            iterations += 1

            decisions: dict[int, bool] = {}
            for request in response.pending_approvals:
                approved = await self._decide(request)
                decisions[request.request_id] = approved
                logger.info(
                    "approval_decision",
                    extra={
                        "tool": request.tool_name,
                        "request_id": request.request_id,
                        "approved": approved,
                    },
                )

            response = await self._responder.submit_approvals(account, decisions)

        return response

    async def _decide(self, request: ApprovalRequest) -> bool:
        prompt = self.format_prompt(request)
        try:
            return bool(await self._handler.request_approval(prompt))
        except Exception as e:
            # Falha ao obter decisão = negação
            logger.warning(
                "approval_handler_failed",
                extra={"tool": request.tool_name, "error": type(e).__name__},
            )
            log_fallback(logger, "approval_handler", reason="handler_error")
            return False
