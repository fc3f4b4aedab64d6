"""Estados, fatores e ações do fluxo de verificação de identidade.

- Anonymous: nenhum cliente candidato resolvido
- Verifying: candidato resolvido, aguardando fator(es)
- Authenticated: política satisfeita (terminal)
- LockedOut: tentativas esgotadas (terminal, permanente na sessão)
"""

from __future__ import annotations

from enum import StrEnum

MAX_ATTEMPTS: int = 3
"""Respostas incorretas permitidas antes do bloqueio."""


class VerificationStatus(StrEnum):
    """Estados do FSM de verificação."""

    ANONYMOUS = "Anonymous"
    VERIFYING = "Verifying"
    AUTHENTICATED = "Authenticated"
    LOCKED_OUT = "LockedOut"


TERMINAL_STATES = frozenset({
    VerificationStatus.AUTHENTICATED,
    VerificationStatus.LOCKED_OUT,
})
"""Estados sem transições de saída."""


class VerificationFactor(StrEnum):
    """Fatores de conhecimento aceitos."""

    SSN = "SSN"  # últimos 4 dígitos
    DOB = "DOB"  # data de nascimento


class NextAction(StrEnum):
    """O que o chamador deve fazer após uma operação de verificação."""

    ASK_IDENTIFIER = "ask_identifier"
    ASK_NEXT_FACTOR = "ask_next_factor"
    COMPLETE = "complete"
    RETRY = "retry"
    LOCKED_OUT = "locked_out"
    NOT_FOUND = "not_found"
    ERROR = "error"


class VerificationEvent(StrEnum):
    """Eventos que movem o FSM de verificação."""

    LOOKUP_SUCCEEDED = "LOOKUP_SUCCEEDED"
    LOOKUP_FAILED = "LOOKUP_FAILED"
    FACTOR_ACCEPTED = "FACTOR_ACCEPTED"
    FACTOR_REJECTED = "FACTOR_REJECTED"
    ATTEMPTS_EXHAUSTED = "ATTEMPTS_EXHAUSTED"
    POLICY_SATISFIED = "POLICY_SATISFIED"
