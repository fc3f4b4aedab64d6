"""Responders de FAQ sobre a base de conhecimento em markdown."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from billing_assist.ai import prompts
from billing_assist.ai.openai_client import OPENAI_ERRORS
from billing_assist.domain.errors import ResponderError
from billing_assist.domain.protocols.responders import FaqResponder, ResponderAnswer
from billing_assist.observability.logging import get_logger

if TYPE_CHECKING:
    from billing_assist.ai.openai_client import OpenAIClientManager

logger: logging.Logger = get_logger(__name__)

_HEADING = re.compile(r"^#{2,3}\s+(.+?)\s*$")
_WORD = re.compile(r"[a-z0-9]+")
_STOPWORDS = frozenset(
    "a an and are be can do does for how i if in is it me my of on or the to what when "
    "where which who why will with you your".split()
)


def load_knowledge_base(path: str | Path) -> str:
    return Path(path).read_text(encoding="utf-8")


def _keywords(text: str) -> set[str]:
    return {w for w in _WORD.findall(text.lower()) if w not in _STOPWORDS}


@dataclass(slots=True)
class KnowledgeSection:
    heading: str
    body: str


def split_sections(knowledge_base: str) -> list[KnowledgeSection]:
    """Quebra o markdown em seções `##`/`###` (título + corpo)."""
    sections: list[KnowledgeSection] = []
    heading: str | None = None
    body: list[str] = []
    for line in knowledge_base.splitlines():
        match = _HEADING.match(line)
        if match:
            if heading is not None and "\n".join(body).strip():
                sections.append(KnowledgeSection(heading, "\n".join(body).strip()))
            heading, body = match.group(1), []
        elif heading is not None:
            body.append(line)
    if heading is not None and "\n".join(body).strip():
        sections.append(KnowledgeSection(heading, "\n".join(body).strip()))
    return sections


class KnowledgeBaseFaqResponder(FaqResponder):
    """Busca determinística da seção mais relevante.

    Pontuação: sobreposição de palavras com o título conta em dobro. Sem
    nenhuma palavra em comum com um título, a pergunta não é resolvida.
    """

    def __init__(self, knowledge_base: str, min_score: int = 2) -> None:
        self._sections = split_sections(knowledge_base)
        self._min_score = min_score

    async def answer(self, text: str) -> ResponderAnswer:
        words = _keywords(text)
        best: KnowledgeSection | None = None
        best_score = 0
        for section in self._sections:
            heading_hits = len(words & _keywords(section.heading))
            if heading_hits == 0:
                continue
            score = heading_hits * 2 + len(words & _keywords(section.body))
            if score > best_score:
                best, best_score = section, score

        if best is None or best_score < self._min_score:
            logger.info("faq_no_match", extra={"score": best_score})
            return ResponderAnswer(text=prompts.NO_INFORMATION_MARKER, resolved=False)

        logger.info("faq_matched", extra={"section": best.heading, "score": best_score})
        return ResponderAnswer(text=best.body, resolved=True)


class OpenAIFaqResponder(FaqResponder):
    """Responder de FAQ via ChatGPT restrito à base de conhecimento."""

    def __init__(self, client: OpenAIClientManager, knowledge_base: str) -> None:
        self._client = client
        self._system_prompt = prompts.get_faq_prompt(knowledge_base)

    async def answer(self, text: str) -> ResponderAnswer:
        try:
            reply = await self._client.complete(self._system_prompt, text, temperature=0.3)
        except OPENAI_ERRORS as e:
            logger.warning(
                "faq_response_error",
                extra={"error": str(e), "error_type": type(e).__name__},
            )
            raise ResponderError(str(e)) from e

        reply = reply.strip()
        if not reply:
            raise ResponderError("empty FAQ response")
        resolved = prompts.NO_INFORMATION_MARKER.lower() not in reply.lower()
        return ResponderAnswer(text=reply, resolved=resolved)
