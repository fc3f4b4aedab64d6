"""Resumidores de conversa para o pacote de handoff."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from billing_assist.ai import prompts
from billing_assist.ai.contracts import SummaryOutput
from billing_assist.ai.openai_client import OPENAI_ERRORS
from billing_assist.ai.parsing import ResponseParseError
from billing_assist.domain.errors import SummarizationError
from billing_assist.domain.protocols.responders import HandoffSummary, Summarizer
from billing_assist.observability.logging import get_logger

if TYPE_CHECKING:
    from billing_assist.ai.openai_client import OpenAIClientManager

logger: logging.Logger = get_logger(__name__)

# Departamento sugerido por palavra-chave (primeiro match vence)
_DEPARTMENTS: tuple[tuple[str, tuple[str, ...]], ...] = (
    ("Collections", ("past due", "disconnect", "shut off", "overdue")),
    ("Payments", ("payment", "pay ", "autopay", "refund", "arrangement", "extension")),
    ("Billing", ("bill", "charge", "usage", "meter", "balance", "rate")),
)


def suggest_department(text: str) -> str:
    lowered = text.lower()
    for department, keywords in _DEPARTMENTS:
        if any(kw in lowered for kw in keywords):
            return department
    return "Customer Service"


class TranscriptSummarizer(Summarizer):
    """Resumo determinístico: últimas falas do cliente como fatos-chave."""

    def __init__(self, max_facts: int = 3) -> None:
        self._max_facts = max_facts

    async def summarize(
        self, transcript: str, reason: str, current_request: str
    ) -> HandoffSummary:
        customer_lines = [
            line.removeprefix("user:").strip()
            for line in transcript.splitlines()
            if line.startswith("user:")
        ]
        facts = [f"Customer said: {line}" for line in customer_lines[-self._max_facts :]]
        return HandoffSummary(
            summary=(
                f"Customer conversation requiring human assistance. Reason: {reason}. "
                f"{len(customer_lines)} customer message(s) exchanged."
            ),
            escalation_reason=reason,
            original_question=current_request,
            suggested_department=suggest_department(f"{current_request}\n{transcript}"),
            key_facts=facts,
        )


class OpenAISummarizer(Summarizer):
    """Resumidor via ChatGPT com saída JSON estruturada."""

    def __init__(self, client: OpenAIClientManager) -> None:
        self._client = client
        self._system_prompt = prompts.get_summary_prompt()

    async def summarize(
        self, transcript: str, reason: str, current_request: str
    ) -> HandoffSummary:
        user_message = prompts.format_summary_input(transcript, reason, current_request)
        try:
            output = await self._client.complete_json(
                self._system_prompt, user_message, SummaryOutput, max_tokens=500
            )
        except OPENAI_ERRORS as e:
            logger.warning(
                "summarization_error",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise SummarizationError(str(e)) from e
        except ResponseParseError as e:
            logger.warning("summarization_parse_error", extra={"error": str(e)})
            raise SummarizationError(str(e)) from e

        return HandoffSummary(
            summary=output.summary,
            escalation_reason=output.escalation_reason or reason,
            original_question=output.original_question or current_request,
            suggested_department=output.suggested_department,
            key_facts=output.key_facts,
        )
