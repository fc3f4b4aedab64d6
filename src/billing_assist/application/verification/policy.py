"""Políticas de autenticação (quantos fatores bastam).

A política padrão aceita UM fator verificado. É uma política fraca (dois
fatores são oferecidos, um basta) mantida por compatibilidade; para exigir
todos os fatores use `AllFactorsPolicy`.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from collections.abc import Set

from billing_assist.domain.verification.states import VerificationFactor

FACTOR_PROMPTS: dict[VerificationFactor, str] = {
    VerificationFactor.SSN: "the last 4 digits of your Social Security Number",
    VerificationFactor.DOB: "your date of birth (MM/DD/YYYY)",
}


class AuthenticationPolicy(ABC):
    """Decide quando os fatores verificados permitem autenticar."""

    @abstractmethod
    def is_satisfied(self, verified: Set[VerificationFactor]) -> bool: ...

    def missing_factors(self, verified: Set[VerificationFactor]) -> list[VerificationFactor]:
        return [f for f in VerificationFactor if f not in verified]

    def challenge_prompt(self, verified: Set[VerificationFactor]) -> str:
        """Pergunta de desafio para os fatores ainda aceitos."""
        options = [FACTOR_PROMPTS[f] for f in self.missing_factors(verified)]
        return "please provide " + " or ".join(options) + "."


class SingleFactorPolicy(AuthenticationPolicy):
    """Qualquer fator verificado autentica."""

    def is_satisfied(self, verified: Set[VerificationFactor]) -> bool:
        return len(verified) >= 1


class AllFactorsPolicy(AuthenticationPolicy):
    """Exige todos os fatores conhecidos."""

    def is_satisfied(self, verified: Set[VerificationFactor]) -> bool:
        return all(f in verified for f in VerificationFactor)
