"""Responders de dados de conta (determinístico e via tool calling).

Cada sub-sessão autenticada ganha uma "thread" em memória com as
ferramentas do cliente e os pedidos de aprovação pendentes. Sub-sessão
sem thread (processo reiniciado, sessão fechada) é acesso invalidado e
força reautenticação.
"""

from __future__ import annotations

import json
import logging
import re
import uuid
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from billing_assist.ai import prompts
from billing_assist.ai.account_tools import (
    ACCOUNT_TOOL_SPECS,
    APPROVAL_REQUIRED,
    MAKE_PAYMENT,
    AccountTools,
    UnknownToolError,
)
from billing_assist.ai.openai_client import OPENAI_ERRORS
from billing_assist.domain.errors import AccessInvalidatedError, ResponderError
from billing_assist.domain.models import AccountContext, ApprovalRequest
from billing_assist.domain.protocols.responders import AccountDataAnswer, AccountDataResponder
from billing_assist.observability.logging import get_logger

if TYPE_CHECKING:
    from billing_assist.ai.openai_client import OpenAIClientManager
    from billing_assist.infra.customer_directory import InMemoryCustomerDirectory

logger: logging.Logger = get_logger(__name__)

UNSUPPORTED_MESSAGE = (
    "I'm not able to help with that request here, but a customer service "
    "representative can."
)
PAYMENT_DECLINED_MESSAGE = "Okay, I won't submit that payment."
NOTHING_TO_PAY_MESSAGE = "Your account balance is $0.00, so there's nothing to pay right now."

_AMOUNT = re.compile(r"\$\s?(\d{1,3}(?:,\d{3})*(?:\.\d{1,2})?|\d+(?:\.\d{1,2})?)")


@dataclass(slots=True)
class AccountThread:
    """Estado vivo de uma sub-sessão de dados de conta."""

    tools: AccountTools
    pending: dict[int, ApprovalRequest] = field(default_factory=dict)
    tool_call_ids: dict[int, str] = field(default_factory=dict)
    messages: list[dict[str, Any]] = field(default_factory=list)


class _ThreadedAccountResponder(AccountDataResponder):
    """Registro de threads por sub_session_id (compartilhado pelas variantes)."""

    def __init__(self, directory: InMemoryCustomerDirectory) -> None:
        self._directory = directory
        self._threads: dict[str, AccountThread] = {}

    async def open_session(
        self, customer_id: str, customer_name: str | None = None
    ) -> AccountContext:
        customer = self._directory.get_customer(customer_id)
        if customer is None:
            raise AccessInvalidatedError(f"customer not found: {customer_id}")

        account = AccountContext(
            sub_session_id=uuid.uuid4().hex,
            customer_id=customer.customer_id,
            customer_name=customer_name or customer.name,
        )
        self._threads[account.sub_session_id] = self._new_thread(AccountTools(customer), account)
        logger.info("account_session_opened")
        return account

    async def close_session(self, account: AccountContext) -> None:
        if self._threads.pop(account.sub_session_id, None) is not None:
            logger.info("account_session_closed")

    def _new_thread(self, tools: AccountTools, account: AccountContext) -> AccountThread:
        return AccountThread(tools=tools)

    def _thread(self, account: AccountContext) -> AccountThread:
        thread = self._threads.get(account.sub_session_id)
        if thread is None:
            raise AccessInvalidatedError("account sub-session is no longer available")
        return thread

    def __len__(self) -> int:
        return len(self._threads)


class DirectoryAccountResponder(_ThreadedAccountResponder):
    """Roteamento por palavras-chave para as ferramentas de conta."""

    _ROUTES: tuple[tuple[tuple[str, ...], str], ...] = (
        (("balance", "owe"), "get_account_balance"),
        (("due",), "get_due_date"),
        (
            ("payment status", "received", "last payment", "did my payment"),
            "get_payment_status",
        ),
        (("usage", "so high", "kwh", "consumption"), "get_usage_analysis"),
        (("autopay", "auto pay", "automatic payment"), "get_autopay_status"),
        (("estimated", "meter", "actual read"), "get_meter_read_type"),
        (("history", "previous bills", "past bills", "recent bills"), "get_billing_history"),
        (("bill details", "latest bill", "last bill", "current bill", "my bill"), "get_bill_details"),
    )
    _PAY_KEYWORDS: tuple[str, ...] = (
        "make a payment",
        "pay my",
        "pay the",
        "pay it",
        "pay $",
        "submit a payment",
    )

    async def answer(self, text: str, account: AccountContext) -> AccountDataAnswer:
        thread = self._thread(account)
        lowered = text.lower()

        if any(kw in lowered for kw in self._PAY_KEYWORDS):
            return self._request_payment(thread, account, text)

        for keywords, tool_name in self._ROUTES:
            if any(kw in lowered for kw in keywords):
                result = thread.tools.invoke(tool_name)
                logger.info("account_tool_invoked", extra={"tool": tool_name})
                return AccountDataAnswer(text=result["message"])

        return AccountDataAnswer(text=UNSUPPORTED_MESSAGE, resolved=False)

    async def submit_approvals(
        self, account: AccountContext, decisions: dict[int, bool]
    ) -> AccountDataAnswer:
        thread = self._thread(account)
        messages: list[str] = []
        for request_id, approved in decisions.items():
            request = thread.pending.pop(request_id, None)
            if request is None:
                logger.warning("approval_unknown_request", extra={"request_id": request_id})
                continue
            if approved:
                result = thread.tools.invoke(request.tool_name, request.arguments)
                messages.append(result["message"])
            else:
                messages.append(PAYMENT_DECLINED_MESSAGE)
        return AccountDataAnswer(text=" ".join(messages) or PAYMENT_DECLINED_MESSAGE)

    def _request_payment(
        self, thread: AccountThread, account: AccountContext, text: str
    ) -> AccountDataAnswer:
        customer = thread.tools.customer
        match = _AMOUNT.search(text)
        amount = float(match.group(1).replace(",", "")) if match else customer.account_balance
        if amount <= 0:
            return AccountDataAnswer(text=NOTHING_TO_PAY_MESSAGE)

        arguments: dict[str, Any] = {"amount": round(amount, 2)}
        if customer.latest_bill is not None:
            arguments["billing_period"] = customer.latest_bill.period
        request = ApprovalRequest(
            request_id=account.next_request_id(),
            tool_name=MAKE_PAYMENT,
            arguments=arguments,
        )
        thread.pending[request.request_id] = request
        return AccountDataAnswer(text="", pending_approvals=[request])


class OpenAIAccountResponder(_ThreadedAccountResponder):
    """Responder via ChatGPT com tool calling sobre as ferramentas de conta.

    Ferramentas em APPROVAL_REQUIRED não executam direto: viram
    ApprovalRequest e só rodam depois de `submit_approvals`.
    """

    def __init__(
        self,
        client: OpenAIClientManager,
        directory: InMemoryCustomerDirectory,
        max_tool_rounds: int = 5,
    ) -> None:
        super().__init__(directory)
        self._client = client
        self._max_tool_rounds = max_tool_rounds

    def _new_thread(self, tools: AccountTools, account: AccountContext) -> AccountThread:
        system = prompts.get_account_prompt(account.customer_name, account.customer_id)
        return AccountThread(tools=tools, messages=[{"role": "system", "content": system}])

    async def answer(self, text: str, account: AccountContext) -> AccountDataAnswer:
        thread = self._thread(account)
        thread.messages.append({"role": "user", "content": text})
        return await self._run(thread, account)

    async def submit_approvals(
        self, account: AccountContext, decisions: dict[int, bool]
    ) -> AccountDataAnswer:
        thread = self._thread(account)
        for request_id in list(thread.pending):
            request = thread.pending.pop(request_id)
            call_id = thread.tool_call_ids.pop(request_id)
            if decisions.get(request_id, False):
                result = self._invoke(thread, request.tool_name, request.arguments)
            else:
                result = {"success": False, "message": "Customer declined this action."}
            thread.messages.append(
                {"role": "tool", "tool_call_id": call_id, "content": AccountTools.to_json(result)}
            )
        return await self._run(thread, account)

    async def _run(self, thread: AccountThread, account: AccountContext) -> AccountDataAnswer:
        for _ in range(self._max_tool_rounds):
            try:
                message = await self._client.complete_with_tools(
                    thread.messages, ACCOUNT_TOOL_SPECS
                )
            except OPENAI_ERRORS as e:
                logger.warning(
                    "account_response_error",
                    extra={"error": str(e), "error_type": type(e).__name__},
                )
                raise ResponderError(str(e)) from e

            thread.messages.append(message.model_dump(exclude_none=True))
            if not message.tool_calls:
                return self._final_answer(message.content or "")

            approvals: list[ApprovalRequest] = []
            for call in message.tool_calls:
                arguments = self._arguments(call.function.arguments)
                if call.function.name in APPROVAL_REQUIRED:
                    request = ApprovalRequest(
                        request_id=account.next_request_id(),
                        tool_name=call.function.name,
                        arguments=arguments,
                    )
                    thread.pending[request.request_id] = request
                    thread.tool_call_ids[request.request_id] = call.id
                    approvals.append(request)
                    continue
                result = self._invoke(thread, call.function.name, arguments)
                thread.messages.append(
                    {"role": "tool", "tool_call_id": call.id, "content": AccountTools.to_json(result)}
                )

            if approvals:
                return AccountDataAnswer(text=message.content or "", pending_approvals=approvals)

        raise ResponderError("account responder exceeded tool rounds")

    @staticmethod
    def _final_answer(content: str) -> AccountDataAnswer:
        text = content.strip()
        if not text:
            raise ResponderError("empty account response")
        if text.startswith(prompts.UNRESOLVED_MARKER):
            detail = text.removeprefix(prompts.UNRESOLVED_MARKER).strip()
            return AccountDataAnswer(text=detail or UNSUPPORTED_MESSAGE, resolved=False)
        return AccountDataAnswer(text=text)

    @staticmethod
    def _arguments(raw: str | None) -> dict[str, Any]:
        try:
            parsed = json.loads(raw or "{}")
        except json.JSONDecodeError:
            return {}
        return parsed if isinstance(parsed, dict) else {}

    @staticmethod
    def _invoke(thread: AccountThread, name: str, arguments: dict[str, Any]) -> dict[str, Any]:
        try:
            result = thread.tools.invoke(name, arguments)
        except (UnknownToolError, TypeError, ValueError) as e:
            logger.warning("account_tool_failed", extra={"tool": name, "error_type": type(e).__name__})
            return {"error": f"{name} failed: {type(e).__name__}"}
        logger.info("account_tool_invoked", extra={"tool": name})
        return result
