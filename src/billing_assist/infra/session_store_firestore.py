"""Implementação assíncrona de SessionStore usando Firestore (AsyncClient)."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from billing_assist.infra.session_contract_async import AsyncSessionStore, SessionStoreError
from billing_assist.observability.logging import get_logger, mask_session_id

if TYPE_CHECKING:
    from billing_assist.application.session import ChatSession

logger = get_logger(__name__)


def _is_expired(expire_at: Any) -> bool:
    return isinstance(expire_at, datetime) and datetime.now(tz=UTC) > expire_at


class FirestoreSessionStore(AsyncSessionStore):
    """Armazenamento de sessão em Firestore.

    Coleção: {collection}/{session_id}. O campo `_ttl_expire_at` alimenta a
    TTL policy do Firestore e também é checado na leitura.
    """

    def __init__(self, firestore_client: Any, collection: str = "chat_sessions") -> None:
        self._client = firestore_client
        self._collection = collection

    def _doc(self, session_id: str) -> Any:
        return self._client.collection(self._collection).document(session_id)

    async def save(self, session: ChatSession, ttl_seconds: int = 7200) -> None:
        """Persiste sessão em Firestore."""
        expire_at = datetime.now(tz=UTC) + timedelta(seconds=ttl_seconds)

        try:
            payload = session.model_dump(mode="json")
            payload["_ttl_expire_at"] = expire_at
            await self._doc(session.session_id).set(payload)
            logger.debug(
                "session_saved_firestore",
                extra={
                    "session_id": mask_session_id(session.session_id),
                    "ttl_seconds": ttl_seconds,
                },
            )
        except Exception as e:
            logger.error(
                "failed_save_firestore",
                extra={"session_id": mask_session_id(session.session_id), "error": str(e)},
            )
            raise SessionStoreError(f"Failed to save session to Firestore: {e}") from e

    async def load(self, session_id: str) -> ChatSession | None:
        """Carrega sessão de Firestore (None se ausente/expirada)."""
        try:
            doc = await self._doc(session_id).get()
        except Exception as e:
            logger.error(
                "failed_load_firestore",
                extra={"session_id": mask_session_id(session_id), "error": str(e)},
            )
            raise SessionStoreError(f"Failed to load session from Firestore: {e}") from e

        if not doc.exists:
            logger.debug(
                "session_not_found_firestore", extra={"session_id": mask_session_id(session_id)}
            )
            return None

        data = doc.to_dict() or {}
        if _is_expired(data.pop("_ttl_expire_at", None)):
            logger.debug(
                "session_expired_firestore", extra={"session_id": mask_session_id(session_id)}
            )
            await self.delete(session_id)
            return None

        from billing_assist.application.session import ChatSession

        session = ChatSession.model_validate(data)
        logger.debug("session_loaded_firestore", extra={"session_id": mask_session_id(session_id)})
        return session

    async def delete(self, session_id: str) -> bool:
        """Remove sessão de Firestore."""
        try:
            await self._doc(session_id).delete()
        except Exception as e:
            logger.error(
                "failed_delete_firestore",
                extra={"session_id": mask_session_id(session_id), "error": str(e)},
            )
            raise SessionStoreError(f"Failed to delete session from Firestore: {e}") from e
        logger.debug("session_deleted_firestore", extra={"session_id": mask_session_id(session_id)})
        return True

    async def exists(self, session_id: str) -> bool:
        """Verifica se sessão existe e não expirou."""
        try:
            doc = await self._doc(session_id).get()
        except Exception as e:
            logger.error(
                "failed_exists_firestore",
                extra={"session_id": mask_session_id(session_id), "error": str(e)},
            )
            return False

        if not doc.exists:
            return False
        data = doc.to_dict() or {}
        return not _is_expired(data.get("_ttl_expire_at"))
