"""Orquestrador de sessão: raiz do núcleo de conversação.

Fluxo de `process_message(session_id, text)`:
1. Entrada vazia/whitespace é ignorada (sem sessão, sem histórico)
2. Lock por session_id; load/create idempotente
3. Turno roda sobre CÓPIA da sessão, com timeout; só é aplicada no sucesso
4. Sub-fluxo de verificação ativo → motor de verificação (sem classificar)
5. Senão classifica (confiança baixa → OutOfScope) e despacha por categoria
6. Erro irrecuperável → desculpas; sessão persistida mesmo assim
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import TYPE_CHECKING

from billing_assist.application.handoff import (
    REASON_ACCOUNT_UNRESOLVED,
    REASON_HUMAN_REQUESTED,
    REASON_LOCKED_OUT,
    REASON_OUTSIDE_FAQ,
    REASON_SERVICE_REQUEST,
)
from billing_assist.application.session.locks import KeyedLock
from billing_assist.application.session.models import ChatSession, UserSessionContext
from billing_assist.domain.enums import (
    AuthenticationState,
    MessageRole,
    QuestionCategory,
    RequiredAction,
)
from billing_assist.domain.errors import (
    AccessInvalidatedError,
    ClassificationError,
    ResponderError,
)
from billing_assist.domain.models import ChatResponse, ConversationMessage, utcnow
from billing_assist.domain.verification.states import NextAction, VerificationStatus
from billing_assist.infra.session_contract_async import SessionStoreError
from billing_assist.observability.logging import get_logger, log_fallback, mask_session_id
from billing_assist.observability.middleware import bind_correlation_id
from billing_assist.observability.timing import timed

if TYPE_CHECKING:
    from billing_assist.application.approval import ApprovalLoopController
    from billing_assist.application.handoff import HandoffAssembler
    from billing_assist.application.session.manager import AsyncSessionManager
    from billing_assist.application.verification.engine import IdentityVerificationEngine
    from billing_assist.domain.catalog import QuestionCatalog
    from billing_assist.domain.models import SuggestedAction
    from billing_assist.domain.protocols import (
        AccountDataResponder,
        FaqResponder,
        FollowUpAdvisor,
        IntentClassifier,
        QuestionClassification,
    )
    from billing_assist.domain.verification.models import VerificationState

logger: logging.Logger = get_logger(__name__)

APOLOGY_MESSAGE = (
    "I apologize, but I encountered an error processing your request. Please try again."
)
REPHRASE_MESSAGE = (
    "I'm having trouble understanding your question. Could you please rephrase it?"
)
OUT_OF_SCOPE_MESSAGE = (
    "I'm a utility billing assistant and can help you with billing questions, "
    "account information, and payment options. Could you please ask something "
    "related to your utility bill or account?"
)
AUTH_INTRO_TEMPLATE = (
    "To access your account information, I'll need to verify your identity first.\n\n{prompt}"
)
LOCKED_OUT_RESPONSE = (
    "I'm sorry, but I wasn't able to verify your identity and account access is now "
    "locked for this conversation. I've forwarded your request to a customer service "
    "representative who will reach out to help you."
)
LOCKED_OUT_REMINDER = (
    "Account access is locked for this conversation after too many failed "
    "verification attempts. A customer service representative will reach out to help you."
)
MAX_FOLLOW_UPS = 2

Handler = Callable[[ChatSession, str, "QuestionClassification"], Awaitable[ChatResponse]]

_AUTH_STATE_BY_STATUS: dict[VerificationStatus, AuthenticationState] = {
    VerificationStatus.ANONYMOUS: AuthenticationState.IN_PROGRESS,
    VerificationStatus.VERIFYING: AuthenticationState.VERIFYING,
    VerificationStatus.AUTHENTICATED: AuthenticationState.AUTHENTICATED,
    VerificationStatus.LOCKED_OUT: AuthenticationState.LOCKED_OUT,
}


class SessionOrchestrator:
    """Dono do estado por sessão e da árvore de roteamento."""

    def __init__(
        self,
        *,
        sessions: AsyncSessionManager,
        classifier: IntentClassifier,
        faq: FaqResponder,
        account: AccountDataResponder,
        verification: IdentityVerificationEngine,
        approvals: ApprovalLoopController,
        handoff: HandoffAssembler,
        follow_ups: FollowUpAdvisor | None = None,
        catalog: QuestionCatalog | None = None,
        confidence_threshold: float = 0.5,
        auth_expiry_minutes: int = 30,
        turn_timeout_seconds: float = 60.0,
        follow_up_timeout_seconds: float = 5.0,
        locks: KeyedLock | None = None,
    ) -> None:
        self._sessions = sessions
        self._classifier = classifier
        self._faq = faq
        self._account = account
        self._verification = verification
        self._approvals = approvals
        self._handoff = handoff
        self._follow_ups = follow_ups
        self._catalog = catalog
        self._threshold = confidence_threshold
        self._auth_expiry_minutes = auth_expiry_minutes
        self._turn_timeout = turn_timeout_seconds
        self._follow_up_timeout = follow_up_timeout_seconds
        self._locks = locks or KeyedLock()
        self._handlers: dict[QuestionCategory, Handler] = {
            QuestionCategory.BILLING_FAQ: self._handle_faq,
            QuestionCategory.ACCOUNT_DATA: self._handle_account_data,
            QuestionCategory.SERVICE_REQUEST: self._handle_service_request,
            QuestionCategory.HUMAN_REQUESTED: self._handle_human_requested,
            QuestionCategory.OUT_OF_SCOPE: self._handle_out_of_scope,
        }

    def register_handler(self, category: QuestionCategory, handler: Handler) -> None:
        """Adiciona/substitui o handler de uma categoria."""
        self._handlers[category] = handler

    @property
    def handoff(self) -> HandoffAssembler:
        return self._handoff

    # ------------------------------------------------------------------
    # API pública
    # ------------------------------------------------------------------

    async def process_message(self, session_id: str, text: str) -> ChatResponse:
        """Processa uma mensagem do usuário e devolve a resposta do turno."""
        if not text or not text.strip():
            logger.debug("empty_message_ignored", extra={"session_id": mask_session_id(session_id)})
            return ChatResponse(message="", category=None, required_action=RequiredAction.NONE)

        text = text.strip()
        with bind_correlation_id():
            async with self._locks.hold(session_id):
                stored = await self._sessions.get_or_create(session_id)
                working = stored.model_copy(deep=True)
                try:
                    async with asyncio.timeout(self._turn_timeout):
                        with timed("turn"):
                            response = await self._run_turn(working, text)
                    session = working
                except Exception as e:
                    logger.error(
                        "turn_failed",
                        extra={
                            "session_id": mask_session_id(session_id),
                            "error_type": type(e).__name__,
                        },
                        exc_info=True,
                    )
                    # Nenhuma mutação parcial do turno é aplicada
                    await self._discard_turn_account(stored, working)
                    session = stored
                    session.append(MessageRole.USER, text)
                    response = ChatResponse(
                        message=APOLOGY_MESSAGE,
                        category=None,
                        required_action=RequiredAction.NONE,
                    )

                session.append(MessageRole.ASSISTANT, response.message)
                await self._persist(session)
                return response

    async def logout(self, session_id: str) -> bool:
        """Encerra a autenticação da sessão.

        Aposenta `auth_context`/`account_context` e volta a Anonymous. Uma
        sessão em LockedOut continua bloqueada (retorna False).
        """
        with bind_correlation_id():
            async with self._locks.hold(session_id):
                session = await self._sessions.get(session_id)
                if session is None:
                    return False
                if session.is_locked_out:
                    logger.info(
                        "logout_ignored_locked_out",
                        extra={"session_id": mask_session_id(session_id)},
                    )
                    return False

                await self._close_account(session)
                session.auth_context = None
                session.pending_query = None
                session.user_context = UserSessionContext(
                    last_interaction=session.user_context.last_interaction
                )
                await self._persist(session)
                logger.info("session_logged_out", extra={"session_id": mask_session_id(session_id)})
                return True

    # ------------------------------------------------------------------
    # Turno
    # ------------------------------------------------------------------

    async def _run_turn(self, session: ChatSession, text: str) -> ChatResponse:
        session.append(MessageRole.USER, text)

        state = session.auth_context
        if state is not None and not state.is_terminal:
            return await self._continue_verification(session, state, text)

        try:
            with timed("classifier"):
                classification = await self._classifier.classify(text)
        except ClassificationError as e:
            logger.warning("classification_failed", extra={"error": str(e)})
            log_fallback(logger, "classifier", reason="parse_error")
            return ChatResponse(
                message=REPHRASE_MESSAGE,
                category=None,
                required_action=RequiredAction.CLARIFICATION_NEEDED,
            )

        category = classification.category
        if classification.confidence < self._threshold:
            logger.info(
                "classification_below_threshold",
                extra={
                    "category": category.value,
                    "confidence": round(classification.confidence, 2),
                    "threshold": self._threshold,
                },
            )
            category = QuestionCategory.OUT_OF_SCOPE

        logger.info(
            "message_classified",
            extra={
                "session_id": mask_session_id(session.session_id),
                "category": category.value,
                "confidence": round(classification.confidence, 2),
            },
        )
        handler = self._handlers.get(category, self._handle_out_of_scope)
        return await handler(session, text, classification)

    # ------------------------------------------------------------------
    # Handlers por categoria
    # ------------------------------------------------------------------

    async def _handle_faq(
        self, session: ChatSession, text: str, classification: QuestionClassification
    ) -> ChatResponse:
        try:
            with timed("faq_responder"):
                answer = await self._faq.answer(text)
        except ResponderError as e:
            return self._rephrase("faq_responder", e)

        if not answer.resolved:
            return await self._escalate(
                session, text, REASON_OUTSIDE_FAQ, QuestionCategory.BILLING_FAQ
            )

        response = ChatResponse(
            message=answer.text,
            category=QuestionCategory.BILLING_FAQ,
            required_action=RequiredAction.NONE,
        )
        return await self._with_follow_ups(session, response)

    async def _handle_account_data(
        self, session: ChatSession, text: str, classification: QuestionClassification
    ) -> ChatResponse:
        if session.is_locked_out:
            logger.info(
                "account_request_locked_out",
                extra={"session_id": mask_session_id(session.session_id)},
            )
            return ChatResponse(
                message=LOCKED_OUT_REMINDER,
                category=QuestionCategory.ACCOUNT_DATA,
                required_action=RequiredAction.AUTHENTICATION_FAILED,
            )

        if not session.has_account_access(utcnow()):
            if session.user_context.auth_state == AuthenticationState.AUTHENTICATED:
                logger.info(
                    "authentication_expired",
                    extra={"session_id": mask_session_id(session.session_id)},
                )
                await self._close_account(session)
                session.invalidate_access()
            return self._begin_verification(session, text)

        return await self._answer_account(session, text)

    async def _handle_service_request(
        self, session: ChatSession, text: str, classification: QuestionClassification
    ) -> ChatResponse:
        return await self._escalate(
            session, text, REASON_SERVICE_REQUEST, QuestionCategory.SERVICE_REQUEST
        )

    async def _handle_human_requested(
        self, session: ChatSession, text: str, classification: QuestionClassification
    ) -> ChatResponse:
        return await self._escalate(
            session, text, REASON_HUMAN_REQUESTED, QuestionCategory.HUMAN_REQUESTED
        )

    async def _handle_out_of_scope(
        self, session: ChatSession, text: str, classification: QuestionClassification
    ) -> ChatResponse:
        return ChatResponse(
            message=OUT_OF_SCOPE_MESSAGE,
            category=QuestionCategory.OUT_OF_SCOPE,
            required_action=RequiredAction.CLARIFICATION_NEEDED,
        )

    # ------------------------------------------------------------------
    # Dados de conta + aprovação
    # ------------------------------------------------------------------

    async def _answer_account(self, session: ChatSession, text: str) -> ChatResponse:
        context = session.user_context
        try:
            if session.account_context is None:
                session.account_context = await self._account.open_session(
                    context.customer_id or "", context.customer_name
                )
            with timed("account_responder"):
                answer = await self._account.answer(text, session.account_context)
                if answer.pending_approvals:
                    answer = await self._approvals.run(session.account_context, answer)
        except AccessInvalidatedError:
            logger.warning(
                "account_access_invalidated",
                extra={"session_id": mask_session_id(session.session_id)},
            )
            session.invalidate_access()
            return self._begin_verification(session, text)
        except ResponderError as e:
            return self._rephrase("account_responder", e)

        session.pending_query = None
        if not answer.resolved:
            return await self._escalate(
                session, text, REASON_ACCOUNT_UNRESOLVED, QuestionCategory.ACCOUNT_DATA
            )

        response = ChatResponse(
            message=answer.text,
            category=QuestionCategory.ACCOUNT_DATA,
            required_action=RequiredAction.NONE,
        )
        return await self._with_follow_ups(session, response)

    async def _discard_turn_account(self, stored: ChatSession, working: ChatSession) -> None:
        """Fecha a sub-sessão de conta tocada por um turno revertido.

        O estado interno do responder não volta junto com a sessão; se a
        sub-sessão revertida é a mesma já persistida, o acesso é invalidado.
        """
        account = working.account_context
        if account is None:
            return
        await self._close_account(working)
        previous = stored.account_context
        if previous is not None and previous.sub_session_id == account.sub_session_id:
            stored.invalidate_access()
            logger.info(
                "account_access_reset_after_rollback",
                extra={"session_id": mask_session_id(stored.session_id)},
            )

    async def _close_account(self, session: ChatSession) -> None:
        if session.account_context is None:
            return
        account = session.account_context
        session.account_context = None
        try:
            await self._account.close_session(account)
        except Exception as e:
            logger.warning(
                "account_session_close_failed",
                extra={"error": str(e), "error_type": type(e).__name__},
            )

    # ------------------------------------------------------------------
    # Verificação
    # ------------------------------------------------------------------

    def _begin_verification(self, session: ChatSession, text: str) -> ChatResponse:
        session.pending_query = text
        session.auth_context = self._verification.start()
        session.user_context.auth_state = AuthenticationState.IN_PROGRESS
        logger.info(
            "verification_started",
            extra={"session_id": mask_session_id(session.session_id)},
        )
        return ChatResponse(
            message=AUTH_INTRO_TEMPLATE.format(prompt=self._verification.opening_prompt()),
            category=QuestionCategory.ACCOUNT_DATA,
            required_action=RequiredAction.AUTHENTICATION_IN_PROGRESS,
        )

    async def _continue_verification(
        self, session: ChatSession, state: VerificationState, text: str
    ) -> ChatResponse:
        with timed("verification"):
            step = await self._verification.respond(state, text)

        # Aplicado só após o await: incremento e bloqueio entram juntos
        session.auth_context = step.state
        session.user_context.auth_state = _AUTH_STATE_BY_STATUS[step.state.state]

        action = step.result.next_action
        if action == NextAction.LOCKED_OUT:
            return await self._lock_out(session, text)
        if action == NextAction.COMPLETE and step.state.is_authenticated:
            return await self._complete_authentication(session, step.state)

        return ChatResponse(
            message=step.result.message,
            category=QuestionCategory.ACCOUNT_DATA,
            required_action=RequiredAction.AUTHENTICATION_IN_PROGRESS,
        )

    async def _complete_authentication(
        self, session: ChatSession, state: VerificationState
    ) -> ChatResponse:
        session.user_context.mark_authenticated(
            state.resolved_customer_id,
            state.resolved_customer_name,
            self._auth_expiry_minutes,
        )
        name = state.resolved_customer_name or "there"
        logger.info(
            "authentication_completed",
            extra={"session_id": mask_session_id(session.session_id)},
        )

        pending = session.pending_query
        if not pending:
            return ChatResponse(
                message=(
                    f"Thank you, {name}! You're now verified. "
                    "How can I help you with your account?"
                ),
                category=QuestionCategory.ACCOUNT_DATA,
                required_action=RequiredAction.NONE,
            )

        response = await self._answer_account(session, pending)
        if response.required_action != RequiredAction.NONE:
            return response
        return response.model_copy(
            update={"message": f"Thank you, {name}! You're now verified.\n\n{response.message}"}
        )

    async def _lock_out(self, session: ChatSession, text: str) -> ChatResponse:
        session.user_context.auth_state = AuthenticationState.LOCKED_OUT
        session.pending_query = None
        logger.warning(
            "verification_locked_out_handoff",
            extra={"session_id": mask_session_id(session.session_id)},
        )
        await self._handoff.hand_off(session, text, REASON_LOCKED_OUT)
        return ChatResponse(
            message=LOCKED_OUT_RESPONSE,
            category=QuestionCategory.ACCOUNT_DATA,
            required_action=RequiredAction.AUTHENTICATION_FAILED,
        )

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _escalate(
        self,
        session: ChatSession,
        text: str,
        reason: str,
        category: QuestionCategory,
    ) -> ChatResponse:
        response = await self._handoff.escalate(session, text, reason)
        return response.model_copy(update={"category": category})

    def _rephrase(self, component: str, error: Exception) -> ChatResponse:
        logger.warning(f"{component}_failed", extra={"error": str(error)})
        log_fallback(logger, component, reason="parse_error")
        return ChatResponse(
            message=REPHRASE_MESSAGE,
            category=None,
            required_action=RequiredAction.CLARIFICATION_NEEDED,
        )

    async def _with_follow_ups(self, session: ChatSession, response: ChatResponse) -> ChatResponse:
        """Anexa sugestões de próxima pergunta (best-effort, nunca falha o turno)."""
        if self._follow_ups is None or response.category is None:
            return response

        history = [
            *session.conversation_history,
            ConversationMessage(role=MessageRole.ASSISTANT, content=response.message),
        ]
        authenticated = session.has_account_access(utcnow())
        try:
            async with asyncio.timeout(self._follow_up_timeout):
                suggestions = await self._follow_ups.suggest(
                    history, response.category, authenticated
                )
        except Exception as e:
            logger.info(
                "follow_up_suggestions_failed",
                extra={"error_type": type(e).__name__},
            )
            log_fallback(logger, "follow_ups", reason=type(e).__name__)
            return response

        valid = self._filter_follow_ups(suggestions, authenticated)
        if not valid:
            return response
        return response.model_copy(update={"suggested_follow_ups": valid})

    def _filter_follow_ups(
        self, suggestions: list[SuggestedAction], authenticated: bool
    ) -> list[SuggestedAction]:
        result: list[SuggestedAction] = []
        for suggestion in suggestions:
            if self._catalog is not None:
                question = self._catalog.find(suggestion.question_id)
                if question is None:
                    logger.debug(
                        "follow_up_unknown_question", extra={"question_id": suggestion.question_id}
                    )
                    continue
                if question.requires_auth and not authenticated:
                    continue
            result.append(suggestion)
            if len(result) >= MAX_FOLLOW_UPS:
                break
        return result

    async def _persist(self, session: ChatSession) -> None:
        try:
            await self._sessions.persist(session)
        except SessionStoreError as e:
            logger.error(
                "Failed to save session",
                extra={"session_id": mask_session_id(session.session_id), "error": str(e)},
            )
