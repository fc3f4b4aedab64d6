"""Testes do SessionOrchestrator (roteamento, verificação, falhas)."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from billing_assist.ai.account_responder import DirectoryAccountResponder
from billing_assist.application.approval import ApprovalLoopController
from billing_assist.application.handoff import (
    HANDOFF_ACKNOWLEDGEMENT,
    REASON_ACCOUNT_UNRESOLVED,
    REASON_LOCKED_OUT,
    REASON_OUTSIDE_FAQ,
    REASON_SERVICE_REQUEST,
)
from billing_assist.application.orchestrator import (
    APOLOGY_MESSAGE,
    LOCKED_OUT_REMINDER,
    LOCKED_OUT_RESPONSE,
    OUT_OF_SCOPE_MESSAGE,
    REPHRASE_MESSAGE,
)
from billing_assist.application.session import AsyncSessionManager, ChatSession
from billing_assist.domain.enums import (
    AuthenticationState,
    QuestionCategory,
    RequiredAction,
)
from billing_assist.domain.errors import ClassificationError, ResponderError
from billing_assist.domain.models import (
    AccountContext,
    ApprovalRequest,
    ChatResponse,
    SuggestedAction,
    utcnow,
)
from billing_assist.domain.protocols import (
    AccountDataAnswer,
    AccountDataResponder,
    QuestionClassification,
    ResponderAnswer,
)
from billing_assist.domain.verification import VerificationState, VerificationStatus
from billing_assist.infra.approval_handlers import PromptApprovalHandler
from billing_assist.infra.session_contract_async import SessionStoreError

SESSION_ID = "session-0001"


def _classifier(category: QuestionCategory, confidence: float = 0.9) -> AsyncMock:
    classifier = AsyncMock()
    classifier.classify.return_value = QuestionClassification(
        category=category, confidence=confidence
    )
    return classifier


async def _store_authenticated(store, *, expired: bool = False, account=None) -> ChatSession:
    """Persiste uma sessão já autenticada como John Smith."""
    session = ChatSession(session_id=SESSION_ID)
    now = utcnow() - timedelta(hours=1) if expired else utcnow()
    session.user_context.mark_authenticated(
        "1234567890", "John Smith", expiry_minutes=30, now=now
    )
    session.auth_context = VerificationState(
        state=VerificationStatus.AUTHENTICATED,
        candidate_identifier="555-1234",
        resolved_customer_id="1234567890",
        resolved_customer_name="John Smith",
        authenticated_at=now,
    )
    session.account_context = account
    await store.save(session)
    return session


async def _slow_reply(prompt: str) -> str:
    await asyncio.sleep(5)
    return "yes"


class _LoopingAccount(AccountDataResponder):
    """Responder que pede aprovação indefinidamente."""

    async def open_session(self, customer_id, customer_name=None):
        return AccountContext(sub_session_id="loop", customer_id=customer_id)

    async def answer(self, text, account):
        return self._pending(account)

    async def submit_approvals(self, account, decisions):
        return self._pending(account)

    async def close_session(self, account):
        return None

    @staticmethod
    def _pending(account: AccountContext) -> AccountDataAnswer:
        return AccountDataAnswer(
            text="",
            pending_approvals=[
                ApprovalRequest(
                    request_id=account.next_request_id(),
                    tool_name="make_payment",
                    arguments={"amount": 10},
                )
            ],
        )


class TestEmptyInput:
    @pytest.mark.asyncio
    async def test_whitespace_is_ignored(self, make_orchestrator, session_store) -> None:
        """Entrada vazia não cria sessão nem histórico."""
        orchestrator = make_orchestrator()

        response = await orchestrator.process_message(SESSION_ID, "   \n")

        assert response == ChatResponse(message="")
        assert await session_store.exists(SESSION_ID) is False


class TestClassificationRouting:
    @pytest.mark.asyncio
    async def test_low_confidence_becomes_out_of_scope(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator(
            classifier=_classifier(QuestionCategory.BILLING_FAQ, confidence=0.3)
        )

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert response.message == OUT_OF_SCOPE_MESSAGE
        assert response.category == QuestionCategory.OUT_OF_SCOPE
        assert response.required_action == RequiredAction.CLARIFICATION_NEEDED

    @pytest.mark.asyncio
    async def test_classification_error_asks_to_rephrase(self, make_orchestrator) -> None:
        classifier = AsyncMock()
        classifier.classify.side_effect = ClassificationError("malformed")
        orchestrator = make_orchestrator(classifier=classifier)

        response = await orchestrator.process_message(SESSION_ID, "???")

        assert response.message == REPHRASE_MESSAGE
        assert response.category is None
        assert response.required_action == RequiredAction.CLARIFICATION_NEEDED

    @pytest.mark.asyncio
    async def test_faq_answer_with_follow_ups(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator()

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert response.category == QuestionCategory.BILLING_FAQ
        assert response.required_action == RequiredAction.NONE
        assert response.suggested_follow_ups is not None
        assert [s.question_id for s in response.suggested_follow_ups] == [
            "billing-cycle",
            "late-fees",
        ]

    @pytest.mark.asyncio
    async def test_faq_responder_error_asks_to_rephrase(self, make_orchestrator) -> None:
        faq = AsyncMock()
        faq.answer.side_effect = ResponderError("empty")
        orchestrator = make_orchestrator(faq=faq)

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert response.message == REPHRASE_MESSAGE

    @pytest.mark.asyncio
    async def test_unresolved_faq_escalates(self, make_orchestrator, handoff_sink) -> None:
        faq = AsyncMock()
        faq.answer.return_value = ResponderAnswer(text="no info", resolved=False)
        orchestrator = make_orchestrator(faq=faq)

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")
        await orchestrator.handoff.drain()

        assert response.message == HANDOFF_ACKNOWLEDGEMENT
        assert response.category == QuestionCategory.BILLING_FAQ
        assert [p.escalation_reason for p in handoff_sink.packages] == [REASON_OUTSIDE_FAQ]

    @pytest.mark.asyncio
    async def test_service_request_escalates(self, make_orchestrator, handoff_sink) -> None:
        orchestrator = make_orchestrator()

        response = await orchestrator.process_message(
            SESSION_ID, "I need to set up a payment arrangement"
        )
        await orchestrator.handoff.drain()

        assert response.category == QuestionCategory.SERVICE_REQUEST
        assert handoff_sink.packages[0].escalation_reason == REASON_SERVICE_REQUEST

    @pytest.mark.asyncio
    async def test_registered_handler_replaces_default(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator()

        async def custom(session, text, classification) -> ChatResponse:
            return ChatResponse(message="custom", category=QuestionCategory.OUT_OF_SCOPE)

        orchestrator.register_handler(QuestionCategory.OUT_OF_SCOPE, custom)
        response = await orchestrator.process_message(SESSION_ID, "What's the weather like?")

        assert response.message == "custom"


class TestVerificationFlow:
    @pytest.mark.asyncio
    async def test_pending_query_answered_after_authentication(
        self, make_orchestrator, session_store
    ) -> None:
        """A pergunta original é respondida no turno que conclui a verificação."""
        orchestrator = make_orchestrator()

        first = await orchestrator.process_message(SESSION_ID, "What is my balance?")
        assert first.required_action == RequiredAction.AUTHENTICATION_IN_PROGRESS
        second = await orchestrator.process_message(SESSION_ID, "555-1234")
        assert "John Smith" in second.message
        third = await orchestrator.process_message(SESSION_ID, "1234")

        assert third.message.startswith("Thank you, John Smith! You're now verified.")
        assert "$187.43" in third.message
        assert third.category == QuestionCategory.ACCOUNT_DATA
        assert third.required_action == RequiredAction.NONE

        stored = await session_store.load(SESSION_ID)
        assert stored.pending_query is None
        assert stored.user_context.auth_state == AuthenticationState.AUTHENTICATED
        assert stored.account_context is not None
        assert len(stored.conversation_history) == 6

    @pytest.mark.asyncio
    async def test_verification_bypasses_classifier(self, make_orchestrator, session_store) -> None:
        classifier = _classifier(QuestionCategory.ACCOUNT_DATA)
        orchestrator = make_orchestrator(classifier=classifier)
        await orchestrator.process_message(SESSION_ID, "What is my balance?")
        classifier.classify.reset_mock()

        await orchestrator.process_message(SESSION_ID, "555-1234")

        classifier.classify.assert_not_called()

    @pytest.mark.asyncio
    async def test_lockout_hands_off_once(
        self, make_orchestrator, session_store, handoff_sink
    ) -> None:
        """Bloqueio gera um handoff; pedidos seguintes só recebem o lembrete."""
        orchestrator = make_orchestrator()
        await orchestrator.process_message(SESSION_ID, "What is my balance?")
        await orchestrator.process_message(SESSION_ID, "555-1234")
        first = await orchestrator.process_message(SESSION_ID, "0000")
        second = await orchestrator.process_message(SESSION_ID, "1111")
        locked = await orchestrator.process_message(SESSION_ID, "2222")

        assert first.message == "Incorrect. 2 attempts remaining."
        assert second.message == "Incorrect. 1 attempt remaining."
        assert locked.message == LOCKED_OUT_RESPONSE
        assert locked.required_action == RequiredAction.AUTHENTICATION_FAILED

        again = await orchestrator.process_message(SESSION_ID, "What is my balance?")
        await orchestrator.handoff.drain()

        assert again.message == LOCKED_OUT_REMINDER
        assert again.required_action == RequiredAction.AUTHENTICATION_FAILED
        assert [p.escalation_reason for p in handoff_sink.packages] == [REASON_LOCKED_OUT]

        stored = await session_store.load(SESSION_ID)
        assert stored.is_locked_out
        assert stored.auth_context.failed_attempts == 3

    @pytest.mark.asyncio
    async def test_faq_still_available_when_locked_out(self, make_orchestrator) -> None:
        orchestrator = make_orchestrator()
        for text in ("What is my balance?", "555-1234", "0000", "1111", "2222"):
            await orchestrator.process_message(SESSION_ID, text)

        response = await orchestrator.process_message(SESSION_ID, "What are the late fees?")

        assert response.category == QuestionCategory.BILLING_FAQ

    @pytest.mark.asyncio
    async def test_expired_authentication_requires_reverification(
        self, make_orchestrator, session_store, directory
    ) -> None:
        account = DirectoryAccountResponder(directory)
        context = await account.open_session("1234567890")
        await _store_authenticated(session_store, expired=True, account=context)
        orchestrator = make_orchestrator(account=account)

        response = await orchestrator.process_message(SESSION_ID, "What is my balance?")

        assert response.required_action == RequiredAction.AUTHENTICATION_IN_PROGRESS
        assert len(account) == 0
        stored = await session_store.load(SESSION_ID)
        assert stored.account_context is None
        assert stored.pending_query == "What is my balance?"
        assert stored.user_context.auth_state == AuthenticationState.IN_PROGRESS

    @pytest.mark.asyncio
    async def test_invalidated_sub_session_forces_reverification(
        self, make_orchestrator, session_store
    ) -> None:
        """Sub-sessão desconhecida (ex.: processo reiniciado) força reautenticação."""
        stale = AccountContext(sub_session_id="gone", customer_id="1234567890")
        await _store_authenticated(session_store, account=stale)
        orchestrator = make_orchestrator()

        response = await orchestrator.process_message(SESSION_ID, "What is my balance?")

        assert response.required_action == RequiredAction.AUTHENTICATION_IN_PROGRESS
        stored = await session_store.load(SESSION_ID)
        assert stored.account_context is None
        assert stored.verification_active


class TestAccountData:
    @pytest.mark.asyncio
    async def test_unsupported_account_question_escalates(
        self, make_orchestrator, session_store, handoff_sink
    ) -> None:
        await _store_authenticated(session_store)
        orchestrator = make_orchestrator()

        response = await orchestrator.process_message(
            SESSION_ID, "Can you change the name on my account?"
        )
        await orchestrator.handoff.drain()

        assert response.message == HANDOFF_ACKNOWLEDGEMENT
        assert response.category == QuestionCategory.ACCOUNT_DATA
        assert handoff_sink.packages[0].escalation_reason == REASON_ACCOUNT_UNRESOLVED
        assert handoff_sink.packages[0].customer_id == "1234567890"

    @pytest.mark.asyncio
    async def test_payment_approved(
        self, make_orchestrator, session_store, approval_replies, directory
    ) -> None:
        await _store_authenticated(session_store)
        approval_replies.replies.append("yes")
        orchestrator = make_orchestrator()

        response = await orchestrator.process_message(SESSION_ID, "I want to make a payment")

        assert approval_replies.prompts == [
            "I'm about to submit a payment of $187.43 for 2024-02. Should I proceed?"
        ]
        assert response.message.startswith("Your payment of $187.43 for 2024-02 has been submitted.")
        assert directory.get_customer("1234567890").account_balance == 0.0

    @pytest.mark.asyncio
    async def test_payment_declined(self, make_orchestrator, session_store, directory) -> None:
        await _store_authenticated(session_store)
        orchestrator = make_orchestrator()

        response = await orchestrator.process_message(SESSION_ID, "I want to make a payment")

        assert response.message == "Okay, I won't submit that payment."
        assert directory.get_customer("1234567890").account_balance == 187.43

    @pytest.mark.asyncio
    async def test_approval_loop_limit_rolls_back_turn(
        self, make_orchestrator, session_store
    ) -> None:
        """Estouro do loop de aprovação vira desculpas sem mutação parcial."""
        await _store_authenticated(session_store)
        orchestrator = make_orchestrator(account=_LoopingAccount())

        response = await orchestrator.process_message(SESSION_ID, "I want to make a payment")

        assert response.message == APOLOGY_MESSAGE
        stored = await session_store.load(SESSION_ID)
        assert stored.account_context is None
        assert [m.content for m in stored.conversation_history] == [
            "I want to make a payment",
            APOLOGY_MESSAGE,
        ]

    @pytest.mark.asyncio
    async def test_timed_out_payment_turns_close_account_threads(
        self, make_orchestrator, session_store, directory
    ) -> None:
        """Turnos revertidos não deixam sub-sessões abertas no responder."""
        await _store_authenticated(session_store)
        account = DirectoryAccountResponder(directory)
        orchestrator = make_orchestrator(
            account=account,
            approvals=ApprovalLoopController(account, PromptApprovalHandler(_slow_reply)),
            turn_timeout_seconds=0.2,
        )

        for _ in range(3):
            response = await orchestrator.process_message(SESSION_ID, "I want to make a payment")
            assert response.message == APOLOGY_MESSAGE

        stored = await session_store.load(SESSION_ID)
        assert stored.account_context is None
        assert stored.has_account_access()
        assert len(account) == 0
        assert directory.get_customer("1234567890").account_balance == 187.43

    @pytest.mark.asyncio
    async def test_rollback_of_existing_sub_session_forces_reverification(
        self, make_orchestrator, session_store, directory
    ) -> None:
        """Sub-session já persistida e tocada por turno revertido é descartada."""
        await _store_authenticated(session_store)
        account = DirectoryAccountResponder(directory)
        orchestrator = make_orchestrator(
            account=account,
            approvals=ApprovalLoopController(account, PromptApprovalHandler(_slow_reply)),
            turn_timeout_seconds=0.2,
        )

        await orchestrator.process_message(SESSION_ID, "What is my balance?")
        assert len(account) == 1

        await orchestrator.process_message(SESSION_ID, "I want to make a payment")

        stored = await session_store.load(SESSION_ID)
        assert len(account) == 0
        assert stored.account_context is None
        assert stored.user_context.auth_state == AuthenticationState.EXPIRED

        again = await orchestrator.process_message(SESSION_ID, "What is my balance?")
        assert again.required_action == RequiredAction.AUTHENTICATION_IN_PROGRESS


class TestFailures:
    @pytest.mark.asyncio
    async def test_turn_timeout_returns_apology(self, make_orchestrator, session_store) -> None:
        async def slow(text: str) -> QuestionClassification:
            await asyncio.sleep(1)
            return QuestionClassification(category=QuestionCategory.BILLING_FAQ, confidence=0.9)

        classifier = AsyncMock()
        classifier.classify.side_effect = slow
        orchestrator = make_orchestrator(classifier=classifier, turn_timeout_seconds=0.05)

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert response.message == APOLOGY_MESSAGE
        assert response.category is None
        stored = await session_store.load(SESSION_ID)
        assert len(stored.conversation_history) == 2

    @pytest.mark.asyncio
    async def test_unexpected_error_returns_apology(self, make_orchestrator) -> None:
        classifier = AsyncMock()
        classifier.classify.side_effect = RuntimeError("boom")
        orchestrator = make_orchestrator(classifier=classifier)

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert response.message == APOLOGY_MESSAGE
        assert response.required_action == RequiredAction.NONE

    @pytest.mark.asyncio
    async def test_persist_failure_still_returns_response(self, make_orchestrator) -> None:
        store = AsyncMock()
        store.load.return_value = None
        store.save.side_effect = SessionStoreError("down")
        orchestrator = make_orchestrator(sessions=AsyncSessionManager(store))

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert response.category == QuestionCategory.BILLING_FAQ
        store.save.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_concurrent_messages_share_one_session(
        self, make_orchestrator, session_store
    ) -> None:
        """Mensagens simultâneas para um id novo criam uma única sessão."""
        orchestrator = make_orchestrator()

        await asyncio.gather(
            orchestrator.process_message(SESSION_ID, "How can I pay my bill?"),
            orchestrator.process_message(SESSION_ID, "What are the late fees?"),
        )

        stored = await session_store.load(SESSION_ID)
        assert len(stored.conversation_history) == 4


class TestFollowUps:
    @pytest.mark.asyncio
    async def test_invalid_suggestions_are_filtered(self, make_orchestrator) -> None:
        """Ids desconhecidos e perguntas que exigem auth (sem auth) são descartados."""
        advisor = AsyncMock()
        advisor.suggest.return_value = [
            SuggestedAction(question_id="unknown-id", suggested_question="?"),
            SuggestedAction(question_id="balance-inquiry", suggested_question="What is my balance?"),
            SuggestedAction(question_id="late-fees", suggested_question="What are the late fees?"),
            SuggestedAction(question_id="billing-cycle", suggested_question="Billing cycle?"),
            SuggestedAction(question_id="payment-options", suggested_question="How to pay?"),
        ]
        orchestrator = make_orchestrator(follow_ups=advisor)

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert [s.question_id for s in response.suggested_follow_ups] == [
            "late-fees",
            "billing-cycle",
        ]

    @pytest.mark.asyncio
    async def test_advisor_failure_is_ignored(self, make_orchestrator) -> None:
        advisor = AsyncMock()
        advisor.suggest.side_effect = RuntimeError("advisor down")
        orchestrator = make_orchestrator(follow_ups=advisor)

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert response.category == QuestionCategory.BILLING_FAQ
        assert response.suggested_follow_ups is None

    @pytest.mark.asyncio
    async def test_advisor_timeout_is_ignored(self, make_orchestrator) -> None:
        async def slow(*args, **kwargs):
            await asyncio.sleep(1)
            return []

        advisor = AsyncMock()
        advisor.suggest.side_effect = slow
        orchestrator = make_orchestrator(follow_ups=advisor, follow_up_timeout_seconds=0.01)

        response = await orchestrator.process_message(SESSION_ID, "How can I pay my bill?")

        assert response.suggested_follow_ups is None

    @pytest.mark.asyncio
    async def test_no_suggestions_for_out_of_scope(self, make_orchestrator) -> None:
        advisor = AsyncMock()
        orchestrator = make_orchestrator(follow_ups=advisor)

        await orchestrator.process_message(SESSION_ID, "What's the weather like?")

        advisor.suggest.assert_not_called()


class TestLogout:
    @pytest.mark.asyncio
    async def test_logout_after_authentication(
        self, make_orchestrator, session_store, directory
    ) -> None:
        account = DirectoryAccountResponder(directory)
        orchestrator = make_orchestrator(account=account)
        for text in ("What is my balance?", "555-1234", "1234"):
            await orchestrator.process_message(SESSION_ID, text)
        assert len(account) == 1

        assert await orchestrator.logout(SESSION_ID) is True

        stored = await session_store.load(SESSION_ID)
        assert stored.user_context.auth_state == AuthenticationState.ANONYMOUS
        assert stored.user_context.customer_id is None
        assert stored.auth_context is None
        assert stored.account_context is None
        assert len(account) == 0

        response = await orchestrator.process_message(SESSION_ID, "What is my balance?")
        assert response.required_action == RequiredAction.AUTHENTICATION_IN_PROGRESS

    @pytest.mark.asyncio
    async def test_logout_unknown_session(self, make_orchestrator) -> None:
        assert await make_orchestrator().logout("missing") is False

    @pytest.mark.asyncio
    async def test_logout_does_not_clear_lockout(self, make_orchestrator, session_store) -> None:
        orchestrator = make_orchestrator()
        for text in ("What is my balance?", "555-1234", "0000", "1111", "2222"):
            await orchestrator.process_message(SESSION_ID, text)

        assert await orchestrator.logout(SESSION_ID) is False
        stored = await session_store.load(SESSION_ID)
        assert stored.is_locked_out
