"""Verificação de identidade: motor, políticas e seletor determinístico."""

from __future__ import annotations

from billing_assist.application.verification.engine import (
    IdentityVerificationEngine,
    VerificationResult,
    VerificationStep,
)
from billing_assist.application.verification.policy import (
    AllFactorsPolicy,
    AuthenticationPolicy,
    SingleFactorPolicy,
)
from billing_assist.application.verification.tool_selector import PatternToolSelector

__all__ = [
    "AllFactorsPolicy",
    "AuthenticationPolicy",
    "IdentityVerificationEngine",
    "PatternToolSelector",
    "SingleFactorPolicy",
    "VerificationResult",
    "VerificationStep",
]
