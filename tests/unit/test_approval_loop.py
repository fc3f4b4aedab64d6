"""Testes do loop de aprovação e da interpretação de respostas."""

from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from billing_assist.application.approval import (
    ApprovalLoopController,
    format_generic,
    format_make_payment,
)
from billing_assist.domain.errors import ApprovalLoopLimitError
from billing_assist.domain.models import AccountContext, ApprovalRequest
from billing_assist.domain.protocols import AccountDataAnswer, ApprovalHandler
from billing_assist.infra.approval_handlers import (
    DenyAllApprovalHandler,
    PromptApprovalHandler,
    is_approval_response,
)


class _StaticHandler(ApprovalHandler):
    def __init__(self, decision: bool) -> None:
        self.decision = decision
        self.prompts: list[str] = []

    async def request_approval(self, prompt: str) -> bool:
        self.prompts.append(prompt)
        return self.decision


class _FailingHandler(ApprovalHandler):
    async def request_approval(self, prompt: str) -> bool:
        raise RuntimeError("channel closed")


def _pending(*ids: int, tool: str = "make_payment") -> AccountDataAnswer:
    return AccountDataAnswer(
        text="",
        pending_approvals=[
            ApprovalRequest(request_id=i, tool_name=tool, arguments={"amount": 50}) for i in ids
        ],
    )


@pytest.fixture()
def account() -> AccountContext:
    return AccountContext(sub_session_id="sub-1", customer_id="1234567890")


class TestApprovalResponseParsing:
    @pytest.mark.parametrize(
        "reply", ["yes", "Yes please", "sure, go ahead", "OK", "yep", "yeah go ahead"]
    )
    def test_affirmative(self, reply: str) -> None:
        assert is_approval_response(reply) is True

    @pytest.mark.parametrize(
        "reply",
        [
            "no",
            "No, cancel",
            "no, wait",
            "yes... actually no",
            "don't",
            "wait",
            "",
            None,
            "maybe",
        ],
    )
    def test_negative_or_ambiguous(self, reply) -> None:
        """Vazio, ambíguo ou com negação é negado."""
        assert is_approval_response(reply) is False

    @pytest.mark.parametrize(
        "reply",
        [
            "I'm not sure",
            "not okay",
            "absolutely not, please",
            "please explain first",
            "ok, but later",
            "hold on, sure",
        ],
    )
    def test_hedged_replies_are_denied(self, reply: str) -> None:
        """Negação ou hesitação vence qualquer palavra afirmativa."""
        assert is_approval_response(reply) is False

    def test_negation_inside_word_does_not_deny(self) -> None:
        assert is_approval_response("yes, now please") is True


class TestPromptFormatting:
    def test_make_payment_prompt(self) -> None:
        prompt = format_make_payment({"amount": 187.432, "billing_period": "2024-02"})
        assert prompt == "I'm about to submit a payment of $187.43 for 2024-02. Should I proceed?"

    def test_make_payment_without_amount_is_unrecognized(self) -> None:
        assert format_make_payment({"billing_period": "2024-02"}) is None

    def test_generic_fallback_for_unknown_tool(self) -> None:
        controller = ApprovalLoopController(AsyncMock(), _StaticHandler(True))
        request = ApprovalRequest(request_id=1, tool_name="close_account")
        assert controller.format_prompt(request) == format_generic("close_account")

    def test_generic_fallback_when_formatter_fails(self) -> None:
        controller = ApprovalLoopController(AsyncMock(), _StaticHandler(True))
        request = ApprovalRequest(request_id=1, tool_name="make_payment", arguments={})
        assert "make_payment" in controller.format_prompt(request)

    def test_registered_formatter(self) -> None:
        controller = ApprovalLoopController(AsyncMock(), _StaticHandler(True))
        controller.register_formatter("enroll_autopay", lambda args: "Enroll in AutoPay?")
        request = ApprovalRequest(request_id=1, tool_name="enroll_autopay")
        assert controller.format_prompt(request) == "Enroll in AutoPay?"


class TestApprovalLoop:
    @pytest.mark.asyncio
    async def test_no_pending_returns_initial(self, account) -> None:
        responder = AsyncMock()
        controller = ApprovalLoopController(responder, _StaticHandler(True))
        initial = AccountDataAnswer(text="Your balance is $10.00.")

        assert await controller.run(account, initial) is initial
        responder.submit_approvals.assert_not_called()

    @pytest.mark.asyncio
    async def test_decisions_correlated_by_request_id(self, account) -> None:
        """Cada decisão volta ao responder com o request_id do pedido."""
        responder = AsyncMock()
        responder.submit_approvals.return_value = AccountDataAnswer(text="Done.")
        handler = _StaticHandler(True)
        controller = ApprovalLoopController(responder, handler)

        result = await controller.run(account, _pending(3, 4))

        assert result.text == "Done."
        responder.submit_approvals.assert_awaited_once_with(account, {3: True, 4: True})
        assert len(handler.prompts) == 2

    @pytest.mark.asyncio
    async def test_handler_failure_is_denial(self, account) -> None:
        responder = AsyncMock()
        responder.submit_approvals.return_value = AccountDataAnswer(text="Cancelled.")
        controller = ApprovalLoopController(responder, _FailingHandler())

        await controller.run(account, _pending(1))

        responder.submit_approvals.assert_awaited_once_with(account, {1: False})

    @pytest.mark.asyncio
    async def test_iteration_limit(self, account) -> None:
        """Responder que pede aprovação para sempre estoura o limite."""
        responder = AsyncMock()
        responder.submit_approvals.side_effect = lambda acc, decisions: _pending(
            max(decisions) + 1
        )
        controller = ApprovalLoopController(responder, _StaticHandler(True), max_iterations=3)

        with pytest.raises(ApprovalLoopLimitError) as exc_info:
            await controller.run(account, _pending(1))

        assert exc_info.value.iterations == 3
        assert responder.submit_approvals.await_count == 3


class TestHandlers:
    @pytest.mark.asyncio
    async def test_prompt_handler_interprets_reply(self) -> None:
        ask = AsyncMock(return_value="yes go ahead")
        handler = PromptApprovalHandler(ask)

        assert await handler.request_approval("Proceed?") is True
        ask.assert_awaited_once_with("Proceed?")

    @pytest.mark.asyncio
    async def test_deny_all(self) -> None:
        assert await DenyAllApprovalHandler().request_approval("Proceed?") is False
