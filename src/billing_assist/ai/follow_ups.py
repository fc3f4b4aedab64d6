"""Sugestões de próxima pergunta (next-best-action)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from billing_assist.ai import prompts
from billing_assist.ai.contracts import FollowUpOutput
from billing_assist.ai.openai_client import OPENAI_ERRORS
from billing_assist.ai.parsing import ResponseParseError
from billing_assist.domain.enums import MessageRole, QuestionCategory
from billing_assist.domain.models import SuggestedAction
from billing_assist.domain.protocols.responders import FollowUpAdvisor
from billing_assist.observability.logging import get_logger

if TYPE_CHECKING:
    from billing_assist.ai.openai_client import OpenAIClientManager
    from billing_assist.domain.catalog import QuestionCatalog
    from billing_assist.domain.models import ConversationMessage

logger: logging.Logger = get_logger(__name__)

MAX_SUGGESTIONS = 2


class CatalogFollowUpAdvisor(FollowUpAdvisor):
    """Sugestões determinísticas a partir do catálogo.

    Prefere perguntas da mesma classe de autenticação da categoria
    respondida e pula as que o usuário já fez (primeiro padrão idêntico).
    """

    def __init__(self, catalog: QuestionCatalog) -> None:
        self._catalog = catalog

    async def suggest(
        self,
        history: list[ConversationMessage],
        category: QuestionCategory,
        is_authenticated: bool,
    ) -> list[SuggestedAction]:
        asked = {
            m.content.strip().lower().rstrip("?")
            for m in history
            if m.role == MessageRole.USER
        }
        want_auth = category == QuestionCategory.ACCOUNT_DATA and is_authenticated

        suggestions: list[SuggestedAction] = []
        for question in self._catalog.questions:
            if question.requires_auth != want_auth or not question.patterns:
                continue
            phrasing = question.patterns[0]
            if phrasing.strip().lower().rstrip("?") in asked:
                continue
            suggestions.append(
                SuggestedAction(question_id=question.id, suggested_question=phrasing)
            )
            if len(suggestions) >= MAX_SUGGESTIONS:
                break
        return suggestions


class OpenAIFollowUpAdvisor(FollowUpAdvisor):
    """Sugestões via ChatGPT; falha vira lista vazia."""

    def __init__(self, client: OpenAIClientManager, catalog: QuestionCatalog) -> None:
        self._client = client
        self._system_prompt = prompts.get_follow_up_prompt(catalog)

    async def suggest(
        self,
        history: list[ConversationMessage],
        category: QuestionCategory,
        is_authenticated: bool,
    ) -> list[SuggestedAction]:
        user_message = prompts.format_follow_up_input(history, category, is_authenticated)
        try:
            output = await self._client.complete_json(
                self._system_prompt, user_message, FollowUpOutput, temperature=0.4
            )
        except (*OPENAI_ERRORS, ResponseParseError) as e:
            logger.info(
                "follow_up_generation_failed",
                extra={"error_type": type(e).__name__},
            )
            return []

        return [
            SuggestedAction(
                question_id=s.question_id, suggested_question=s.suggested_question
            )
            for s in output.suggestions[:MAX_SUGGESTIONS]
        ]
