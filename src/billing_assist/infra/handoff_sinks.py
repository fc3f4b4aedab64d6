"""Destinos de pacotes de handoff (log e Firestore)."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from billing_assist.domain.protocols.sinks import HandoffSink
from billing_assist.observability.logging import get_logger, mask_session_id

if TYPE_CHECKING:
    from billing_assist.domain.models import HandoffPackage

logger: logging.Logger = get_logger(__name__)


class LoggingHandoffSink(HandoffSink):
    """Emite o pacote como bloco de texto formatado no log."""

    def __init__(self, target: logging.Logger | None = None) -> None:
        self._logger = target or logger

    async def emit(self, package: HandoffPackage) -> None:
        self._logger.info(
            package.format_block(),
            extra={
                "event": "handoff_emitted",
                "session_id": mask_session_id(package.session_id),
                "reason": package.escalation_reason,
            },
        )


class FirestoreHandoffSink(HandoffSink):
    """Persiste pacotes em {collection}/{session_id}-{timestamp}."""

    def __init__(self, firestore_client: Any, collection: str = "handoffs") -> None:
        self._client = firestore_client
        self._collection = collection

    async def emit(self, package: HandoffPackage) -> None:
        doc_id = f"{package.session_id}-{int(package.created_at.timestamp() * 1000)}"
        payload = package.model_dump(mode="json")
        await self._client.collection(self._collection).document(doc_id).set(payload)
        logger.debug(
            "handoff_saved_firestore",
            extra={"session_id": mask_session_id(package.session_id)},
        )


class CollectingHandoffSink(HandoffSink):
    """Guarda pacotes em memória (dev/testes)."""

    def __init__(self) -> None:
        self.packages: list[HandoffPackage] = []

    async def emit(self, package: HandoffPackage) -> None:
        self.packages.append(package)
