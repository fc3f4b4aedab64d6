"""Contrato assíncrono de persistência de ChatSession.

Permite persistência não-bloqueante em memória, Redis e Firestore.
Semântica: chave → sessão, last-write-wins.
"""

from __future__ import annotations

from abc import abstractmethod
from typing import TYPE_CHECKING

from billing_assist.domain.protocols.session_store import AsyncSessionStoreProtocol

if TYPE_CHECKING:
    from billing_assist.application.session import ChatSession


class SessionStoreError(Exception):
    """Erro ao persistir ou recuperar sessão."""


class AsyncSessionStore(AsyncSessionStoreProtocol):
    """Contrato abstrato para armazenamento assíncrono de ChatSession."""

    @abstractmethod
    async def save(self, session: ChatSession, ttl_seconds: int = 7200) -> None:
        """Persiste sessão com TTL.

        Args:
            session: Sessão a persistir
            ttl_seconds: Time-to-live em segundos

        Raises:
            SessionStoreError: Se persistência falhar
        """
        ...

    @abstractmethod
    async def load(self, session_id: str) -> ChatSession | None:
        """Carrega sessão por ID.

        Returns:
            ChatSession ou None se não encontrada/expirada
        """
        ...

    @abstractmethod
    async def delete(self, session_id: str) -> bool:
        """Remove sessão. Retorna True se removida."""
        ...

    @abstractmethod
    async def exists(self, session_id: str) -> bool:
        """Verifica se sessão existe e não expirou."""
        ...
