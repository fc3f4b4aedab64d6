"""Seletor determinístico de ferramentas de verificação (sem LLM).

Usado quando OPENAI_ENABLED=false. Reconhece identificadores e respostas a
desafios por padrões; qualquer outra coisa retorna None (nenhum progresso).
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING

from billing_assist.domain.protocols.identity import ToolCall, VerificationToolSelector

if TYPE_CHECKING:
    from billing_assist.domain.protocols.identity import ToolSpec
    from billing_assist.domain.verification.models import VerificationState

_EMAIL = re.compile(r"[\w.+-]+@[\w-]+(?:\.[\w-]+)+")
_ACCOUNT = re.compile(r"(?<![\d-])\d{10}(?![\d-])")
_PHONE = re.compile(r"(?<![\d-])(?:\(?\d{3}\)?[-.\s])?\d{3}-\d{4}(?![\d-])")
_SSN_LAST4 = re.compile(r"(?<![\d/-])\d{4}(?![\d/-])")
_DATE = re.compile(
    r"\b\d{1,2}/\d{1,2}/\d{4}\b"
    r"|\b\d{4}-\d{2}-\d{2}\b"
    r"|\b(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?\s+\d{1,2},?\s+\d{4}\b"
    r"|\b\d{1,2}\s+(?:jan|feb|mar|apr|may|jun|jul|aug|sep|oct|nov|dec)[a-z]*\.?,?\s+\d{4}\b",
    re.IGNORECASE,
)


class PatternToolSelector(VerificationToolSelector):
    """Escolhe ferramenta por regex sobre o texto do usuário."""

    async def select(
        self, text: str, state: VerificationState, tools: list[ToolSpec]
    ) -> ToolCall | None:
        names = {tool.name for tool in tools}

        if "lookup_customer" in names:
            identifier = self._find_identifier(text)
            if identifier:
                return ToolCall(name="lookup_customer", arguments={"identifier": identifier})
            return None

        date_match = _DATE.search(text)
        if date_match and "verify_date_of_birth" in names:
            return ToolCall(name="verify_date_of_birth", arguments={"answer": date_match.group(0)})

        ssn_match = _SSN_LAST4.search(text)
        if ssn_match and "verify_last_four_ssn" in names:
            return ToolCall(name="verify_last_four_ssn", arguments={"answer": ssn_match.group(0)})

        return None

    @staticmethod
    def _find_identifier(text: str) -> str | None:
        for pattern in (_EMAIL, _ACCOUNT, _PHONE):
            match = pattern.search(text)
            if match:
                return match.group(0)
        return None
