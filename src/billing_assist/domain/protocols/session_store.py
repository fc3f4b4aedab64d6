"""Protocolo de domínio para persistência assíncrona de ChatSession."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from billing_assist.application.session import ChatSession


class AsyncSessionStoreProtocol(ABC):
    """Contrato mínimo assíncrono (chave → sessão, last-write-wins)."""

    @abstractmethod
    async def save(self, session: ChatSession, ttl_seconds: int = 7200) -> None: ...

    @abstractmethod
    async def load(self, session_id: str) -> ChatSession | None: ...

    @abstractmethod
    async def delete(self, session_id: str) -> bool: ...

    @abstractmethod
    async def exists(self, session_id: str) -> bool: ...
