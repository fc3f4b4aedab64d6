"""Snapshot versionado do estado de verificação de identidade.

Política de evolução do snapshot:
- Campos desconhecidos são ignorados
- Campos ausentes recebem default
- Chaves da versão 1 (camelCase) são migradas no load
- O invariante `failed_attempts >= MAX ⇒ LockedOut` é restabelecido na
  restauração, nunca apenas verificado na leitura
"""

from __future__ import annotations

from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator

from billing_assist.domain.verification.states import (
    MAX_ATTEMPTS,
    VerificationFactor,
    VerificationStatus,
)

SCHEMA_VERSION: int = 2

# Chaves do formato v1 → campos atuais
_V1_KEYS: dict[str, str] = {
    "authState": "state",
    "failedAttempts": "failed_attempts",
    "verifiedFactors": "verified_factors",
    "identifyingInfo": "candidate_identifier",
    "customerId": "resolved_customer_id",
    "customerName": "resolved_customer_name",
    "authenticatedAt": "authenticated_at",
}

# Estados do formato v1 que não existem mais no FSM atual
_V1_STATES: dict[str, str] = {
    "InProgress": VerificationStatus.VERIFYING.value,
    "Expired": VerificationStatus.ANONYMOUS.value,
}


class VerificationState(BaseModel):
    """Estado do sub-fluxo de verificação (embutido em `auth_context`)."""

    model_config = ConfigDict(extra="ignore")

    schema_version: int = SCHEMA_VERSION
    state: VerificationStatus = VerificationStatus.ANONYMOUS
    failed_attempts: int = 0
    verified_factors: set[VerificationFactor] = Field(default_factory=set)
    candidate_identifier: str | None = None
    resolved_customer_id: str | None = None
    resolved_customer_name: str | None = None
    authenticated_at: datetime | None = None

    @model_validator(mode="before")
    @classmethod
    def _migrate_legacy(cls, data: Any) -> Any:
        """Converte snapshots v1 para o formato atual."""
        if not isinstance(data, dict):
            return data
        if int(data.get("schema_version", 1)) >= SCHEMA_VERSION and not any(
            key in data for key in _V1_KEYS
        ):
            return data

        migrated: dict[str, Any] = {}
        for key, value in data.items():
            migrated[_V1_KEYS.get(key, key)] = value

        legacy_state = migrated.get("state")
        if isinstance(legacy_state, str) and legacy_state in _V1_STATES:
            migrated["state"] = _V1_STATES[legacy_state]

        migrated["schema_version"] = SCHEMA_VERSION
        return migrated

    @model_validator(mode="after")
    def _enforce_attempt_budget(self) -> VerificationState:
        """Restabelece o invariante do contador de tentativas."""
        if self.failed_attempts < 0:
            self.failed_attempts = 0
        if self.failed_attempts >= MAX_ATTEMPTS:
            self.failed_attempts = MAX_ATTEMPTS
            self.state = VerificationStatus.LOCKED_OUT
        return self

    @property
    def remaining_attempts(self) -> int:
        return max(MAX_ATTEMPTS - self.failed_attempts, 0)

    @property
    def is_terminal(self) -> bool:
        return self.state in (VerificationStatus.AUTHENTICATED, VerificationStatus.LOCKED_OUT)

    @property
    def is_locked_out(self) -> bool:
        return self.state == VerificationStatus.LOCKED_OUT

    @property
    def is_authenticated(self) -> bool:
        return self.state == VerificationStatus.AUTHENTICATED
