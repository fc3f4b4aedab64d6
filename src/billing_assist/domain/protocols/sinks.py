"""Contratos de efeitos colaterais: aprovação humana e emissão de handoff."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from billing_assist.domain.models import HandoffPackage


class ApprovalHandler(ABC):
    """Obtém decisão humana (texto livre → booleano) para um prompt."""

    @abstractmethod
    async def request_approval(self, prompt: str) -> bool: ...


class HandoffSink(ABC):
    """Destino dos pacotes de handoff (log, fila, banco)."""

    @abstractmethod
    async def emit(self, package: HandoffPackage) -> None: ...
