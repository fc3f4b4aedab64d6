"""Seletor de ferramentas de verificação via tool calling."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING

from billing_assist.ai import prompts
from billing_assist.ai.openai_client import OPENAI_ERRORS
from billing_assist.domain.protocols.identity import ToolCall, VerificationToolSelector
from billing_assist.observability.logging import get_logger, log_fallback

if TYPE_CHECKING:
    from billing_assist.ai.openai_client import OpenAIClientManager
    from billing_assist.domain.protocols.identity import ToolSpec
    from billing_assist.domain.verification.models import VerificationState

logger: logging.Logger = get_logger(__name__)


class OpenAIToolSelector(VerificationToolSelector):
    """Deixa o LLM escolher a ferramenta; erro de API cai no fallback."""

    def __init__(
        self,
        client: OpenAIClientManager,
        fallback: VerificationToolSelector | None = None,
    ) -> None:
        self._client = client
        self._fallback = fallback
        self._system_prompt = prompts.get_verification_prompt()

    async def select(
        self, text: str, state: VerificationState, tools: list[ToolSpec]
    ) -> ToolCall | None:
        messages = [
            {"role": "system", "content": self._system_prompt},
            {
                "role": "system",
                "content": (
                    f"Verification state: {state.state.value}. "
                    f"Remaining attempts: {state.remaining_attempts}."
                ),
            },
            {"role": "user", "content": text},
        ]
        try:
            message = await self._client.complete_with_tools(messages, tools, temperature=0.0)
        except OPENAI_ERRORS as e:
            logger.warning(
                "verification_selector_error",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            if self._fallback is None:
                return None
            log_fallback(logger, "verification_selector", reason=type(e).__name__)
            return await self._fallback.select(text, state, tools)

        if not message.tool_calls:
            return None

        call = message.tool_calls[0]
        try:
            arguments = json.loads(call.function.arguments or "{}")
        except json.JSONDecodeError:
            logger.warning("verification_tool_arguments_invalid", extra={"tool": call.function.name})
            return None
        if not isinstance(arguments, dict):
            return None
        return ToolCall(name=call.function.name, arguments=arguments)
