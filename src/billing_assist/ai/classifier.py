"""Classificadores de intenção (determinístico e via LLM)."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING

from billing_assist.ai import prompts
from billing_assist.ai.contracts import ClassifierOutput
from billing_assist.ai.openai_client import OPENAI_ERRORS
from billing_assist.ai.parsing import ResponseParseError
from billing_assist.domain.enums import QuestionCategory
from billing_assist.domain.errors import ClassificationError
from billing_assist.domain.protocols.responders import IntentClassifier, QuestionClassification
from billing_assist.observability.logging import get_logger

if TYPE_CHECKING:
    from billing_assist.ai.openai_client import OpenAIClientManager
    from billing_assist.domain.catalog import QuestionCatalog, VerifiedQuestion

logger: logging.Logger = get_logger(__name__)

_WORD = re.compile(r"[a-z0-9']+")


def _words(text: str) -> set[str]:
    return set(_WORD.findall(text.lower()))


class KeywordIntentClassifier(IntentClassifier):
    """Classificação determinística por palavras-chave.

    Categorias de maior prioridade vêm primeiro no mapeamento; em empate no
    número de matches, vence a que aparece antes.
    """

    def __init__(self, catalog: QuestionCatalog | None = None) -> None:
        self._catalog = catalog
        self._keywords: dict[QuestionCategory, list[str]] = {
            QuestionCategory.HUMAN_REQUESTED: [
                "human",
                "representative",
                "real person",
                "live agent",
                "talk to someone",
                "speak to someone",
                "operator",
                "speak to an agent",
                "talk to an agent",
            ],
            QuestionCategory.SERVICE_REQUEST: [
                "payment arrangement",
                "payment plan",
                "extension",
                "start service",
                "stop service",
                "transfer service",
                "moving",
                "dispute",
                "disconnect",
                "reconnect",
            ],
            QuestionCategory.ACCOUNT_DATA: [
                "my balance",
                "i owe",
                "my account",
                "my usage",
                "my due date",
                "my payment",
                "my last payment",
                "my last bill",
                "my latest bill",
                "my current bill",
                "my billing history",
                "my meter",
                "my autopay",
                "bill so high",
                "make a payment",
                "pay my balance",
                "am i enrolled",
                "am i on autopay",
                "when is my bill due",
                "did you receive",
            ],
            QuestionCategory.BILLING_FAQ: [
                "how can i pay",
                "how do i pay",
                "payment options",
                "ways to pay",
                "late fee",
                "billing cycle",
                "assistance program",
                "help paying",
                "enroll in autopay",
                "sign up for autopay",
                "what is autopay",
                "budget billing",
                "estimated read",
                "read my bill",
            ],
        }

    async def classify(self, text: str) -> QuestionClassification:
        text_lower = text.lower().strip()
        if not text_lower:
            raise ClassificationError("empty input")

        max_matches = 0
        matched = QuestionCategory.OUT_OF_SCOPE
        confidence = 0.3

        for category, keywords in self._keywords.items():
            matches = sum(1 for kw in keywords if kw in text_lower)
            if matches > max_matches:
                max_matches = matches
                matched = category
                confidence = min(0.55 + matches * 0.15, 0.95)

        question = self._match_question(text_lower)
        if question is not None and matched == QuestionCategory.OUT_OF_SCOPE:
            matched = (
                QuestionCategory.ACCOUNT_DATA
                if question.requires_auth
                else QuestionCategory.BILLING_FAQ
            )
            confidence = 0.6

        return QuestionClassification(
            category=matched,
            confidence=confidence,
            requires_auth=matched == QuestionCategory.ACCOUNT_DATA,
            question_type=question.id if question else None,
            reasoning=f"keyword_matches={max_matches}",
        )

    def _match_question(self, text_lower: str) -> VerifiedQuestion | None:
        """Pergunta do catálogo cujo padrão mais se sobrepõe ao texto."""
        if self._catalog is None:
            return None
        words = _words(text_lower)
        best: VerifiedQuestion | None = None
        best_score = 0.0
        for question in self._catalog.questions:
            for pattern in question.patterns:
                pattern_words = _words(pattern)
                if not pattern_words:
                    continue
                score = len(words & pattern_words) / len(pattern_words)
                if score > best_score:
                    best, best_score = question, score
        return best if best_score >= 0.75 else None


class OpenAIIntentClassifier(IntentClassifier):
    """Classificador via ChatGPT com saída JSON estruturada."""

    def __init__(self, client: OpenAIClientManager, catalog: QuestionCatalog | None = None) -> None:
        self._client = client
        self._system_prompt = prompts.get_classifier_prompt(catalog)

    async def classify(self, text: str) -> QuestionClassification:
        try:
            output = await self._client.complete_json(
                self._system_prompt, text, ClassifierOutput, temperature=0.0, max_tokens=150
            )
        except OPENAI_ERRORS as e:
            logger.warning(
                "classification_error",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise ClassificationError(str(e)) from e
        except ResponseParseError as e:
            logger.warning("classification_parse_error", extra={"error": str(e)})
            raise ClassificationError(str(e)) from e

        return QuestionClassification(
            category=output.category,
            confidence=output.confidence,
            requires_auth=output.requires_auth,
            question_type=output.question_type,
            reasoning=output.reasoning,
        )
