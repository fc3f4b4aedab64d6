"""Implementação de AsyncSessionStore em memória (apenas dev/testes)."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from billing_assist.infra.session_contract_async import AsyncSessionStore
from billing_assist.observability.logging import get_logger, mask_session_id

if TYPE_CHECKING:
    from billing_assist.application.session import ChatSession

logger: logging.Logger = get_logger(__name__)


class InMemorySessionStore(AsyncSessionStore):
    """Armazenamento em memória (não usar em produção).

    Guarda cópias profundas: quem chama nunca compartilha identidade de
    objeto com o que está armazenado entre turnos.
    """

    def __init__(self) -> None:
        self._sessions: dict[str, tuple[ChatSession, float]] = {}

    async def save(self, session: ChatSession, ttl_seconds: int = 7200) -> None:
        expire_at = datetime.now(tz=UTC).timestamp() + ttl_seconds
        self._sessions[session.session_id] = (session.model_copy(deep=True), expire_at)
        logger.debug(
            "Session saved (in-memory)",
            extra={"session_id": mask_session_id(session.session_id), "ttl_seconds": ttl_seconds},
        )

    async def load(self, session_id: str) -> ChatSession | None:
        entry = self._sessions.get(session_id)
        if entry is None:
            logger.debug(
                "Session not found (in-memory)",
                extra={"session_id": mask_session_id(session_id)},
            )
            return None

        session, expire_at = entry
        if datetime.now(tz=UTC).timestamp() > expire_at:
            del self._sessions[session_id]
            logger.debug(
                "Session expired (in-memory)",
                extra={"session_id": mask_session_id(session_id)},
            )
            return None

        return session.model_copy(deep=True)

    async def delete(self, session_id: str) -> bool:
        if session_id in self._sessions:
            del self._sessions[session_id]
            logger.debug(
                "Session deleted (in-memory)",
                extra={"session_id": mask_session_id(session_id)},
            )
            return True
        return False

    async def exists(self, session_id: str) -> bool:
        return await self.load(session_id) is not None

    def __len__(self) -> int:
        return len(self._sessions)
