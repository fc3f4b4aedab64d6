"""AsyncSessionManager: ciclo de vida de ChatSession (load/create, persist).

A criação no primeiro contato é idempotente por id: o orquestrador chama
`get_or_create` dentro do lock da sessão, então duas mensagens simultâneas
para um id novo resultam em uma única sessão.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from billing_assist.application.session.models import ChatSession
from billing_assist.domain.models import utcnow
from billing_assist.observability.logging import get_logger, mask_session_id

if TYPE_CHECKING:
    from billing_assist.domain.protocols import AsyncSessionStoreProtocol


class AsyncSessionManager:
    """Gerencia ciclo de vida de sessão sobre um AsyncSessionStore."""

    def __init__(
        self,
        session_store: AsyncSessionStoreProtocol,
        ttl_seconds: int = 7200,
        logger: logging.Logger | None = None,
    ) -> None:
        self._sessions = session_store
        self._ttl_seconds = ttl_seconds
        self._logger = logger or get_logger(__name__)

    async def get(self, session_id: str) -> ChatSession | None:
        return await self._sessions.load(session_id)

    async def get_or_create(self, session_id: str) -> ChatSession:
        """Recupera sessão existente ou cria nova (sem persistir ainda)."""
        session = await self._sessions.load(session_id)
        if session:
            self._logger.debug(
                "Session loaded", extra={"session_id": mask_session_id(session_id)}
            )
            return session

        session = ChatSession(session_id=session_id)
        self._logger.info(
            "New session created", extra={"session_id": mask_session_id(session_id)}
        )
        return session

    async def persist(self, session: ChatSession) -> None:
        """Persiste sessão atualizando `updated_at`.

        Erros do store propagam: o chamador decide como reportar.
        """
        session.updated_at = utcnow()
        await self._sessions.save(session, ttl_seconds=self._ttl_seconds)
