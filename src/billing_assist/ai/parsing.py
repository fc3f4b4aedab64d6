"""Parsing das saídas de LLM em contratos Pydantic.

LLMs às vezes envolvem o JSON em blocos markdown (```json ... ```) ou
adicionam texto antes/depois; extraímos o primeiro objeto JSON antes de
validar.
"""

from __future__ import annotations

import re
from typing import TypeVar

from pydantic import BaseModel, ValidationError

_FENCED = re.compile(r"```(?:json)?\s*(.*?)\s*```", re.DOTALL | re.IGNORECASE)

ModelT = TypeVar("ModelT", bound=BaseModel)


class ResponseParseError(ValueError):
    """Saída do LLM vazia ou fora do contrato."""


def extract_json(raw_text: str | None) -> str:
    """Extrai o trecho JSON de uma resposta (com ou sem cerca markdown)."""
    text = (raw_text or "").strip()
    if not text:
        raise ResponseParseError("Response text was empty")

    fenced = _FENCED.search(text)
    if fenced:
        text = fenced.group(1).strip()

    start = text.find("{")
    end = text.rfind("}")
    if start == -1 or end < start:
        raise ResponseParseError("No JSON object found in response")
    return text[start : end + 1]


def parse_model(raw_text: str | None, model: type[ModelT]) -> ModelT:
    """Valida a resposta do LLM contra um contrato.

    Raises:
        ResponseParseError: texto vazio, sem JSON ou JSON inválido pro contrato
    """
    payload = extract_json(raw_text)
    try:
        return model.model_validate_json(payload)
    except ValidationError as e:
        raise ResponseParseError(f"Invalid {model.__name__}: {e.error_count()} error(s)") from e
