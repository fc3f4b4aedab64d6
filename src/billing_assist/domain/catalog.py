"""Catálogo de perguntas verificadas (tipos de pergunta conhecidos)."""

from __future__ import annotations

import json
from pathlib import Path

from pydantic import BaseModel, Field, TypeAdapter


class VerifiedQuestion(BaseModel):
    """Tipo de pergunta conhecido, com padrões de exemplo e nível de auth."""

    id: str
    description: str = ""
    patterns: list[str] = Field(default_factory=list)
    required_plugins: list[str] = Field(default_factory=list)
    required_auth_level: str = "None"  # None | Basic | Elevated
    fallback_message: str | None = None

    @property
    def requires_auth(self) -> bool:
        return self.required_auth_level != "None"


_QUESTIONS_ADAPTER = TypeAdapter(list[VerifiedQuestion])


class QuestionCatalog:
    """Índice case-insensitive das perguntas verificadas."""

    def __init__(self, questions: list[VerifiedQuestion]) -> None:
        self._questions = list(questions)
        self._by_id = {q.id.lower(): q for q in self._questions}

    @classmethod
    def load(cls, path: str | Path) -> QuestionCatalog:
        """Carrega o catálogo de um arquivo JSON (lista de perguntas)."""
        raw = json.loads(Path(path).read_text(encoding="utf-8"))
        return cls(_QUESTIONS_ADAPTER.validate_python(raw))

    @property
    def questions(self) -> list[VerifiedQuestion]:
        return list(self._questions)

    def find(self, question_id: str | None) -> VerifiedQuestion | None:
        if not question_id:
            return None
        return self._by_id.get(question_id.lower())

    def __contains__(self, question_id: object) -> bool:
        return isinstance(question_id, str) and question_id.lower() in self._by_id

    def __len__(self) -> int:
        return len(self._questions)
