"""Cliente OpenAI compartilhado pelos colaboradores baseados em LLM.

Fornece abstração sobre a API OpenAI, com suporte a:
- Completions de texto livre (FAQ)
- Completions JSON validadas em contratos Pydantic (classificador,
  resumo, sugestões)
- Tool calling (seletor de verificação, responder de conta)

Erros da API propagam como `APIError`/`APITimeoutError`; cada colaborador
decide o fallback (erro de domínio ou alternativa determinística).
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, TypeVar

from openai import APIError, APITimeoutError, AsyncOpenAI
from pydantic import BaseModel

from billing_assist.ai.parsing import parse_model

if TYPE_CHECKING:
    from openai.types.chat import ChatCompletionMessage

    from billing_assist.domain.protocols.identity import ToolSpec

ModelT = TypeVar("ModelT", bound=BaseModel)

OPENAI_ERRORS: tuple[type[Exception], ...] = (APIError, APITimeoutError)


def to_openai_tools(specs: list[ToolSpec]) -> list[dict[str, Any]]:
    """Converte ToolSpecs no formato `tools` da Chat Completions API."""
    return [
        {
            "type": "function",
            "function": {
                "name": spec.name,
                "description": spec.description,
                "parameters": spec.parameters or {"type": "object", "properties": {}},
            },
        }
        for spec in specs
    ]


class OpenAIClientManager:
    """Gerenciador do cliente OpenAI com timeout e retries."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        timeout_seconds: float = 10.0,
        max_retries: int = 2,
        client: AsyncOpenAI | None = None,
    ) -> None:
        self._client = client or AsyncOpenAI(api_key=api_key, max_retries=max_retries)
        self._model = model
        self._timeout = timeout_seconds

    @property
    def model(self) -> str:
        return self._model

    async def complete(
        self,
        system_prompt: str,
        user_message: str,
        *,
        temperature: float = 0.3,
        max_tokens: int = 400,
    ) -> str:
        """Completion de texto livre."""
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self._timeout,
        )
        return response.choices[0].message.content or ""

    async def complete_json(
        self,
        system_prompt: str,
        user_message: str,
        model: type[ModelT],
        *,
        temperature: float = 0.2,
        max_tokens: int = 300,
    ) -> ModelT:
        """Completion em modo JSON validada contra `model`.

        Raises:
            ResponseParseError: saída vazia ou fora do contrato
        """
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=[
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_message},
            ],
            temperature=temperature,
            max_tokens=max_tokens,
            response_format={"type": "json_object"},
            timeout=self._timeout,
        )
        result_text = response.choices[0].message.content or ""
        return parse_model(result_text, model)

    async def complete_with_tools(
        self,
        messages: list[dict[str, Any]],
        tools: list[ToolSpec],
        *,
        temperature: float = 0.2,
        max_tokens: int = 400,
        tool_choice: str = "auto",
    ) -> ChatCompletionMessage:
        """Completion com tool calling; devolve a mensagem do assistente."""
        kwargs: dict[str, Any] = {}
        if tools:
            kwargs["tools"] = to_openai_tools(tools)
            kwargs["tool_choice"] = tool_choice
        response = await self._client.chat.completions.create(
            model=self._model,
            messages=messages,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=self._timeout,
            **kwargs,
        )
        return response.choices[0].message
