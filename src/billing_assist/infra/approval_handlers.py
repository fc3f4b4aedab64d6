"""Handlers de aprovação humana (interpretação de linguagem natural).

Política: entrada vazia ou ambígua é NEGAÇÃO. Aprovar exige sinal
afirmativo explícito; palavras de negação têm precedência.
"""

from __future__ import annotations

import asyncio
import re
from collections.abc import Awaitable, Callable

from billing_assist.domain.protocols.sinks import ApprovalHandler
from billing_assist.observability.logging import get_logger

logger = get_logger(__name__)

DENY_KEYWORDS: tuple[str, ...] = (
    "no",
    "cancel",
    "stop",
    "don't",
    "dont",
    "wait",
    "nevermind",
    "never mind",
    "nope",
    "nah",
    "not",
    "never",
    "hold on",
    "hold off",
    "later",
    "unsure",
    "isn't",
    "can't",
    "won't",
    "shouldn't",
)
APPROVE_KEYWORDS: tuple[str, ...] = (
    "yes",
    "yeah",
    "sure",
    "ok",
    "okay",
    "proceed",
    "go ahead",
    "do it",
    "confirm",
    "yep",
    "yup",
    "approved",
)


def _contains_keyword(text: str, keyword: str) -> bool:
    return re.search(rf"(?<![\w']){re.escape(keyword)}(?![\w'])", text) is not None


def is_approval_response(reply: str | None) -> bool:
    """Interpreta a resposta do usuário a um prompt de aprovação."""
    text = (reply or "").strip().lower().replace("’", "'")
    if not text:
        return False
    if any(_contains_keyword(text, kw) for kw in DENY_KEYWORDS):
        return False
    return any(_contains_keyword(text, kw) for kw in APPROVE_KEYWORDS)


ReplyProvider = Callable[[str], Awaitable[str | None]]


class PromptApprovalHandler(ApprovalHandler):
    """Pergunta via callback assíncrono e interpreta a resposta."""

    def __init__(self, ask: ReplyProvider) -> None:
        self._ask = ask

    async def request_approval(self, prompt: str) -> bool:
        reply = await self._ask(prompt)
        return is_approval_response(reply)


class ConsoleApprovalHandler(ApprovalHandler):
    """Pergunta no terminal (script de console)."""

    async def request_approval(self, prompt: str) -> bool:
        reply = await asyncio.to_thread(input, f"\n{prompt}\n> ")
        return is_approval_response(reply)


class DenyAllApprovalHandler(ApprovalHandler):
    """Front ends sem canal de resposta no meio do turno (HTTP): nega sempre."""

    async def request_approval(self, prompt: str) -> bool:
        logger.info("approval_denied_no_channel")
        return False
