"""Logging estruturado (JSON) do assistente de faturamento.

Todo record recebe `service` e `correlation_id`. Campos de `extra` que
carregam respostas de verificação de identidade são mascarados antes da
formatação.
"""

from __future__ import annotations

import logging
from typing import IO

from pythonjsonlogger.json import JsonFormatter

from billing_assist.observability.middleware import get_correlation_id

_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s %(correlation_id)s %(service)s"

REDACTED = "[redacted]"
SENSITIVE_FIELDS = frozenset({"answer", "ssn", "last_four_ssn", "date_of_birth", "identifier"})


class CorrelationIdFilter(logging.Filter):
    """Anexa service e correlation_id (respeita um correlation_id vindo em `extra`)."""

    def __init__(self, service_name: str) -> None:
        super().__init__()
        self._service_name = service_name

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        if not getattr(record, "correlation_id", None):
            record.correlation_id = get_correlation_id()
        record.service = self._service_name
        return True


class SensitiveFieldFilter(logging.Filter):
    """Mascara SSN, data de nascimento e identificadores passados em `extra`."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003
        for field in SENSITIVE_FIELDS:
            if getattr(record, field, None) is not None:
                setattr(record, field, REDACTED)
        return True


def configure_logging(level: str, service_name: str, stream: IO[str] | None = None) -> None:
    """Instala um único handler JSON no root logger."""
    handler = logging.StreamHandler(stream)
    handler.setLevel(level)
    handler.setFormatter(
        JsonFormatter(_LOG_FORMAT, rename_fields={"levelname": "level", "name": "logger"})
    )
    handler.addFilter(CorrelationIdFilter(service_name))
    handler.addFilter(SensitiveFieldFilter())

    root = logging.getLogger()
    root.setLevel(level)
    root.handlers = [handler]


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)


def mask_session_id(session_id: str | None) -> str | None:
    """Primeiros 8 caracteres do session_id, para `extra`."""
    if not session_id:
        return None
    return session_id[:8] + "..."


def log_fallback(
    logger: logging.Logger,
    component: str,
    reason: str | None = None,
    elapsed_ms: float | None = None,
) -> None:
    """Registra que um componente caiu no caminho determinístico.

    Args:
        logger: logger do módulo chamador
        component: "classifier", "summarizer", "follow_ups", ...
        reason: causa curta ("parse_error", "api_timeout"); nunca texto do usuário
        elapsed_ms: tempo gasto antes do fallback, quando medido
    """
    extra: dict[str, object] = {"fallback_used": True, "component": component}
    if reason:
        extra["reason"] = reason
    if elapsed_ms is not None:
        extra["elapsed_ms"] = elapsed_ms
    logger.info("fallback_applied", extra=extra)
