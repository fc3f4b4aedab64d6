"""Implementação de AsyncSessionStore usando Redis (redis.asyncio)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from billing_assist.infra.session_contract_async import AsyncSessionStore, SessionStoreError
from billing_assist.observability.logging import get_logger, mask_session_id

if TYPE_CHECKING:
    from billing_assist.application.session import ChatSession

logger: logging.Logger = get_logger(__name__)


class RedisSessionStore(AsyncSessionStore):
    """Armazenamento em Redis para produção (TTL nativo via SETEX)."""

    def __init__(self, redis_client: Any, key_prefix: str = "session") -> None:
        self._redis = redis_client
        self._prefix = key_prefix

    def _key(self, session_id: str) -> str:
        return f"{self._prefix}:{session_id}"

    async def save(self, session: ChatSession, ttl_seconds: int = 7200) -> None:
        payload = session.model_dump_json()

        try:
            await self._redis.setex(self._key(session.session_id), ttl_seconds, payload)
            logger.debug(
                "Session saved (Redis)",
                extra={
                    "session_id": mask_session_id(session.session_id),
                    "ttl_seconds": ttl_seconds,
                },
            )
        except Exception as e:
            logger.error(
                "Failed to save session to Redis",
                extra={"session_id": mask_session_id(session.session_id), "error": str(e)},
            )
            raise SessionStoreError(f"Redis save failed: {e}") from e

    async def load(self, session_id: str) -> ChatSession | None:
        try:
            payload = await self._redis.get(self._key(session_id))
        except Exception as e:
            logger.error(
                "Failed to load session from Redis",
                extra={"session_id": mask_session_id(session_id), "error": str(e)},
            )
            raise SessionStoreError(f"Redis load failed: {e}") from e

        if not payload:
            logger.debug(
                "Session not found (Redis)", extra={"session_id": mask_session_id(session_id)}
            )
            return None

        if isinstance(payload, bytes):
            payload = payload.decode("utf-8")

        from billing_assist.application.session import ChatSession

        try:
            session = ChatSession.model_validate_json(payload)
        except ValueError as e:
            logger.error(
                "Corrupted session payload (Redis)",
                extra={"session_id": mask_session_id(session_id), "error": str(e)},
            )
            raise SessionStoreError(f"Redis payload invalid: {e}") from e

        logger.debug("Session loaded (Redis)", extra={"session_id": mask_session_id(session_id)})
        return session

    async def delete(self, session_id: str) -> bool:
        try:
            deleted = await self._redis.delete(self._key(session_id))
        except Exception as e:
            logger.error(
                "Failed to delete session from Redis",
                extra={"session_id": mask_session_id(session_id), "error": str(e)},
            )
            raise SessionStoreError(f"Redis delete failed: {e}") from e
        return bool(deleted)

    async def exists(self, session_id: str) -> bool:
        try:
            return bool(await self._redis.exists(self._key(session_id)))
        except Exception as e:
            logger.error(
                "Failed to check session existence in Redis",
                extra={"session_id": mask_session_id(session_id), "error": str(e)},
            )
            return False
