"""Tabela de transições do FSM de verificação.

- TRANSITIONS[(current_state, event)] = next_state
- Estados terminais não aparecem como origem
- Validação pura: sem side effects
"""

from __future__ import annotations

from billing_assist.domain.verification.states import (
    TERMINAL_STATES,
    VerificationEvent,
    VerificationStatus,
)

TRANSITIONS: dict[tuple[VerificationStatus, VerificationEvent], VerificationStatus] = {
    # === Anonymous → ... ===
    (
        VerificationStatus.ANONYMOUS,
        VerificationEvent.LOOKUP_SUCCEEDED,
    ): VerificationStatus.VERIFYING,
    (
        VerificationStatus.ANONYMOUS,
        VerificationEvent.LOOKUP_FAILED,
    ): VerificationStatus.ANONYMOUS,
    # === Verifying → ... ===
    (
        VerificationStatus.VERIFYING,
        VerificationEvent.FACTOR_ACCEPTED,
    ): VerificationStatus.VERIFYING,
    (
        VerificationStatus.VERIFYING,
        VerificationEvent.FACTOR_REJECTED,
    ): VerificationStatus.VERIFYING,
    (
        VerificationStatus.VERIFYING,
        VerificationEvent.ATTEMPTS_EXHAUSTED,
    ): VerificationStatus.LOCKED_OUT,
    (
        VerificationStatus.VERIFYING,
        VerificationEvent.POLICY_SATISFIED,
    ): VerificationStatus.AUTHENTICATED,
    # === Authenticated, LockedOut: SEM transições de saída ===
}


def validate_transition(
    current_state: VerificationStatus, event: VerificationEvent
) -> tuple[bool, VerificationStatus | None, str]:
    """Valida se uma transição é permitida.

    Retorna:
    - (True, next_state, ""): transição válida
    - (False, None, motivo): transição inválida

    Nunca lança exceção; apenas valida.
    """
    if current_state in TERMINAL_STATES:
        return False, None, f"Terminal state {current_state} has no transitions"

    key = (current_state, event)
    if key not in TRANSITIONS:
        return False, None, f"No transition from {current_state} on event {event}"

    return True, TRANSITIONS[key], ""
