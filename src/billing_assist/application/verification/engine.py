"""Motor de verificação de identidade (challenge/response com bloqueio).

FSM: Anonymous → Verifying → {Authenticated, LockedOut}.

Regras:
- Lookups que falham NÃO consomem tentativas; só respostas erradas a um
  desafio consomem
- Resposta errada que atinge MAX_ATTEMPTS leva a LockedOut na mesma
  transição (não existe estado com contador no máximo e Verifying)
- LockedOut é permanente para a sessão; consultas repetidas são idempotentes
- Ferramenta não resolvida pelo seletor = nenhum progresso

Toda operação recebe um snapshot e devolve um NOVO snapshot junto com o
resultado. O snapshot de entrada nunca é alterado, então o chamador só
aplica o novo estado depois que todos os awaits terminaram.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from billing_assist.application.verification.policy import (
    AuthenticationPolicy,
    SingleFactorPolicy,
)
from billing_assist.domain.models import utcnow
from billing_assist.domain.protocols.identity import ToolCall, ToolSpec
from billing_assist.domain.verification.models import VerificationState
from billing_assist.domain.verification.states import (
    MAX_ATTEMPTS,
    NextAction,
    VerificationEvent,
    VerificationFactor,
    VerificationStatus,
)
from billing_assist.domain.verification.transitions import validate_transition
from billing_assist.observability.logging import get_logger

if TYPE_CHECKING:
    from billing_assist.domain.protocols.identity import (
        IdentityDirectory,
        VerificationToolSelector,
    )

logger: logging.Logger = get_logger(__name__)

IDENTIFIER_PROMPT = (
    "Please provide the phone number, email address, or account number "
    "on your utility account."
)
NOT_FOUND_MESSAGE = (
    "No account found with that phone, email, or account number. "
    "Please check and try again."
)
LOCKED_OUT_MESSAGE = (
    "Account locked due to too many failed attempts. Please contact customer service."
)
ERROR_MESSAGE = "I wasn't able to process that verification step. Please try again."

# Ferramentas expostas ao seletor por estado
LOOKUP_TOOL = ToolSpec(
    name="lookup_customer",
    description="Look up a customer by phone number, email, or account number",
    parameters={
        "type": "object",
        "properties": {"identifier": {"type": "string"}},
        "required": ["identifier"],
    },
)
VERIFY_SSN_TOOL = ToolSpec(
    name="verify_last_four_ssn",
    description="Verify the last 4 digits of customer's SSN",
    parameters={
        "type": "object",
        "properties": {"answer": {"type": "string"}},
        "required": ["answer"],
    },
)
VERIFY_DOB_TOOL = ToolSpec(
    name="verify_date_of_birth",
    description="Verify customer's date of birth (format: MM/DD/YYYY)",
    parameters={
        "type": "object",
        "properties": {"answer": {"type": "string"}},
        "required": ["answer"],
    },
)
COMPLETE_TOOL = ToolSpec(
    name="complete_authentication",
    description="Mark customer as authenticated after successful verification",
    parameters={"type": "object", "properties": {}},
)

_FACTOR_TOOLS: dict[str, VerificationFactor] = {
    VERIFY_SSN_TOOL.name: VerificationFactor.SSN,
    VERIFY_DOB_TOOL.name: VerificationFactor.DOB,
}


@dataclass(frozen=True, slots=True)
class VerificationResult:
    """Resultado estruturado de cada operação de verificação."""

    verified: bool
    remaining_attempts: int
    next_action: NextAction
    message: str


@dataclass(frozen=True, slots=True)
class VerificationStep:
    """Novo snapshot + resultado da operação."""

    state: VerificationState
    result: VerificationResult


class IdentityVerificationEngine:
    """Executa o sub-protocolo de verificação sobre snapshots imutáveis."""

    def __init__(
        self,
        directory: IdentityDirectory,
        tool_selector: VerificationToolSelector | None = None,
        policy: AuthenticationPolicy | None = None,
    ) -> None:
        self._directory = directory
        self._selector = tool_selector
        self._policy = policy or SingleFactorPolicy()

    @property
    def policy(self) -> AuthenticationPolicy:
        return self._policy

    def start(self) -> VerificationState:
        """Novo sub-fluxo em Anonymous."""
        return VerificationState()

    def opening_prompt(self) -> str:
        return IDENTIFIER_PROMPT

    def tools_for(self, state: VerificationState) -> list[ToolSpec]:
        """Ferramentas disponíveis no estado atual (nenhuma nos terminais)."""
        if state.state == VerificationStatus.ANONYMOUS:
            return [LOOKUP_TOOL]
        if state.state == VerificationStatus.VERIFYING:
            return [VERIFY_SSN_TOOL, VERIFY_DOB_TOOL, COMPLETE_TOOL]
        return []

    # ------------------------------------------------------------------
    # Operações primitivas
    # ------------------------------------------------------------------

    async def lookup(self, state: VerificationState, identifier: str) -> VerificationStep:
        """Resolve o cliente candidato. Falha não consome tentativas."""
        if state.is_locked_out or state.failed_attempts >= MAX_ATTEMPTS:
            return self._locked_out(state)
        if state.state != VerificationStatus.ANONYMOUS:
            return self._error(state, "lookup_after_identification")

        identifier = identifier.strip()
        if not identifier:
            return VerificationStep(
                state=state,
                result=self._result(state, NextAction.ASK_IDENTIFIER, IDENTIFIER_PROMPT),
            )

        found = await self._directory.lookup_identity(identifier)
        if not found.found:
            self._next_status(state, VerificationEvent.LOOKUP_FAILED)
            logger.info("verification_lookup_not_found")
            return VerificationStep(
                state=state,
                result=self._result(state, NextAction.NOT_FOUND, NOT_FOUND_MESSAGE),
            )

        next_status = self._next_status(state, VerificationEvent.LOOKUP_SUCCEEDED)
        new_state = state.model_copy(
            deep=True,
            update={
                "state": next_status,
                "candidate_identifier": identifier,
                "resolved_customer_id": found.customer_id,
                "resolved_customer_name": found.customer_name,
            },
        )
        logger.info("verification_lookup_succeeded", extra={"state": next_status.value})
        name = found.customer_name or "your account"
        message = (
            f"Thank you. I found the account for {name}. To verify your identity, "
            f"{self._policy.challenge_prompt(new_state.verified_factors)}"
        )
        return VerificationStep(
            state=new_state,
            result=self._result(new_state, NextAction.ASK_NEXT_FACTOR, message),
        )

    async def verify(
        self, state: VerificationState, factor: VerificationFactor, answer: str
    ) -> VerificationStep:
        """Confere a resposta a um desafio; resposta errada consome tentativa."""
        if state.is_locked_out or state.failed_attempts >= MAX_ATTEMPTS:
            return self._locked_out(state)
        if state.state != VerificationStatus.VERIFYING or not state.candidate_identifier:
            return self._error(state, "verify_before_lookup")

        check = await self._directory.verify_factor(factor, answer, state.candidate_identifier)
        if not check.customer_found:
            return self._error(state, "candidate_not_found")

        if check.correct:
            self._next_status(state, VerificationEvent.FACTOR_ACCEPTED)
            new_state = state.model_copy(deep=True)
            new_state.verified_factors.add(factor)
            logger.info("verification_factor_accepted", extra={"factor": factor.value})
            if self._policy.is_satisfied(new_state.verified_factors):
                return VerificationStep(
                    state=new_state,
                    result=VerificationResult(
                        verified=True,
                        remaining_attempts=new_state.remaining_attempts,
                        next_action=NextAction.COMPLETE,
                        message=f"{factor.value} verified successfully.",
                    ),
                )
            message = (
                f"{factor.value} verified. To finish verifying your identity, "
                f"{self._policy.challenge_prompt(new_state.verified_factors)}"
            )
            return VerificationStep(
                state=new_state,
                result=VerificationResult(
                    verified=True,
                    remaining_attempts=new_state.remaining_attempts,
                    next_action=NextAction.ASK_NEXT_FACTOR,
                    message=message,
                ),
            )

        failed = state.failed_attempts + 1
        if failed >= MAX_ATTEMPTS:
            next_status = self._next_status(state, VerificationEvent.ATTEMPTS_EXHAUSTED)
            new_state = state.model_copy(
                deep=True, update={"failed_attempts": MAX_ATTEMPTS, "state": next_status}
            )
            logger.warning(
                "verification_locked_out",
                extra={"factor": factor.value, "failed_attempts": MAX_ATTEMPTS},
            )
            return VerificationStep(
                state=new_state,
                result=self._result(new_state, NextAction.LOCKED_OUT, LOCKED_OUT_MESSAGE),
            )

        self._next_status(state, VerificationEvent.FACTOR_REJECTED)
        new_state = state.model_copy(deep=True, update={"failed_attempts": failed})
        remaining = new_state.remaining_attempts
        logger.info(
            "verification_factor_rejected",
            extra={"factor": factor.value, "failed_attempts": failed},
        )
        plural = "" if remaining == 1 else "s"
        return VerificationStep(
            state=new_state,
            result=self._result(
                new_state,
                NextAction.RETRY,
                f"Incorrect. {remaining} attempt{plural} remaining.",
            ),
        )

    def complete(self, state: VerificationState) -> VerificationStep:
        """Ação explícita "complete": Verifying → Authenticated se a política permitir."""
        if state.is_locked_out or state.failed_attempts >= MAX_ATTEMPTS:
            return self._locked_out(state)
        if state.is_authenticated:
            return VerificationStep(state=state, result=self._authenticated_result(state))
        if state.state != VerificationStatus.VERIFYING:
            return self._error(state, "complete_before_lookup")
        if not self._policy.is_satisfied(state.verified_factors):
            message = (
                "No verification completed yet. To verify your identity, "
                f"{self._policy.challenge_prompt(state.verified_factors)}"
            )
            return VerificationStep(
                state=state,
                result=self._result(state, NextAction.ASK_NEXT_FACTOR, message),
            )

        next_status = self._next_status(state, VerificationEvent.POLICY_SATISFIED)
        new_state = state.model_copy(
            deep=True, update={"state": next_status, "authenticated_at": utcnow()}
        )
        logger.info(
            "verification_completed",
            extra={"factors": sorted(f.value for f in new_state.verified_factors)},
        )
        return VerificationStep(state=new_state, result=self._authenticated_result(new_state))

    # ------------------------------------------------------------------
    # Driver de turno
    # ------------------------------------------------------------------

    async def respond(self, state: VerificationState, text: str) -> VerificationStep:
        """Processa uma mensagem do usuário dentro do sub-fluxo.

        O seletor escolhe a ferramenta; quando a política é satisfeita por
        um fator aceito, a autenticação é concluída no mesmo turno.
        """
        if state.is_locked_out or state.failed_attempts >= MAX_ATTEMPTS:
            return self._locked_out(state)
        if state.is_authenticated:
            return VerificationStep(state=state, result=self._authenticated_result(state))

        tools = self.tools_for(state)
        call = await self._select(text, state, tools)
        if call is None:
            return self._no_progress(state)

        if call.name == LOOKUP_TOOL.name:
            identifier = call.arguments.get("identifier")
            if not isinstance(identifier, str) or not identifier.strip():
                return self._no_progress(state)
            return await self.lookup(state, identifier)

        if call.name in _FACTOR_TOOLS:
            answer = call.arguments.get("answer")
            if not isinstance(answer, str) or not answer.strip():
                return self._no_progress(state)
            step = await self.verify(state, _FACTOR_TOOLS[call.name], answer)
            if step.result.next_action == NextAction.COMPLETE:
                return self.complete(step.state)
            return step

        # complete_authentication
        return self.complete(state)

    async def _select(
        self, text: str, state: VerificationState, tools: list[ToolSpec]
    ) -> ToolCall | None:
        if self._selector is None or not tools:
            return None
        call = await self._selector.select(text, state, tools)
        if call is None:
            logger.info("verification_tool_unresolved", extra={"state": state.state.value})
            return None
        if call.name not in {tool.name for tool in tools}:
            logger.warning(
                "verification_tool_not_allowed",
                extra={"tool": call.name, "state": state.state.value},
            )
            return None
        return call

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _next_status(
        self, state: VerificationState, event: VerificationEvent
    ) -> VerificationStatus:
        ok, next_status, reason = validate_transition(state.state, event)
        if not ok or next_status is None:
            raise RuntimeError(reason)
        return next_status

    def _result(
        self, state: VerificationState, action: NextAction, message: str
    ) -> VerificationResult:
        return VerificationResult(
            verified=state.is_authenticated,
            remaining_attempts=state.remaining_attempts,
            next_action=action,
            message=message,
        )

    def _authenticated_result(self, state: VerificationState) -> VerificationResult:
        name = state.resolved_customer_name or "the customer"
        return VerificationResult(
            verified=True,
            remaining_attempts=state.remaining_attempts,
            next_action=NextAction.COMPLETE,
            message=f"Authentication complete. Customer {name} is now verified.",
        )

    def _locked_out(self, state: VerificationState) -> VerificationStep:
        if state.state != VerificationStatus.LOCKED_OUT:
            state = state.model_copy(
                deep=True,
                update={"state": VerificationStatus.LOCKED_OUT, "failed_attempts": MAX_ATTEMPTS},
            )
        return VerificationStep(
            state=state,
            result=VerificationResult(
                verified=False,
                remaining_attempts=0,
                next_action=NextAction.LOCKED_OUT,
                message=LOCKED_OUT_MESSAGE,
            ),
        )

    def _error(self, state: VerificationState, reason: str) -> VerificationStep:
        logger.warning("verification_misuse", extra={"reason": reason, "state": state.state.value})
        return VerificationStep(
            state=state, result=self._result(state, NextAction.ERROR, ERROR_MESSAGE)
        )

    def _no_progress(self, state: VerificationState) -> VerificationStep:
        if state.state == VerificationStatus.ANONYMOUS:
            return VerificationStep(
                state=state,
                result=self._result(state, NextAction.ASK_IDENTIFIER, IDENTIFIER_PROMPT),
            )
        message = (
            "I didn't catch that. To verify your identity, "
            f"{self._policy.challenge_prompt(state.verified_factors)}"
        )
        return VerificationStep(
            state=state, result=self._result(state, NextAction.ASK_NEXT_FACTOR, message)
        )
