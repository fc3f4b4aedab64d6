"""Domínio do FSM de verificação de identidade."""

from __future__ import annotations

from billing_assist.domain.verification.models import SCHEMA_VERSION, VerificationState
from billing_assist.domain.verification.states import (
    MAX_ATTEMPTS,
    TERMINAL_STATES,
    NextAction,
    VerificationEvent,
    VerificationFactor,
    VerificationStatus,
)
from billing_assist.domain.verification.transitions import TRANSITIONS, validate_transition

__all__ = [
    "MAX_ATTEMPTS",
    "SCHEMA_VERSION",
    "TERMINAL_STATES",
    "TRANSITIONS",
    "NextAction",
    "VerificationEvent",
    "VerificationFactor",
    "VerificationState",
    "VerificationStatus",
    "validate_transition",
]
