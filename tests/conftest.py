from __future__ import annotations

from collections.abc import Callable

import pytest
from fastapi.testclient import TestClient

from billing_assist.ai.account_responder import DirectoryAccountResponder
from billing_assist.ai.classifier import KeywordIntentClassifier
from billing_assist.ai.faq import KnowledgeBaseFaqResponder, load_knowledge_base
from billing_assist.ai.follow_ups import CatalogFollowUpAdvisor
from billing_assist.ai.summarizer import TranscriptSummarizer
from billing_assist.api.app import create_app
from billing_assist.application.approval import ApprovalLoopController
from billing_assist.application.handoff import HandoffAssembler
from billing_assist.application.orchestrator import SessionOrchestrator
from billing_assist.application.session.manager import AsyncSessionManager
from billing_assist.application.verification import (
    IdentityVerificationEngine,
    PatternToolSelector,
)
from billing_assist.config.settings import (
    DEFAULT_FAQ_KNOWLEDGE_BASE_PATH,
    DEFAULT_VERIFIED_QUESTIONS_PATH,
    Settings,
    get_settings,
)
from billing_assist.domain.catalog import QuestionCatalog
from billing_assist.infra.approval_handlers import PromptApprovalHandler
from billing_assist.infra.customer_directory import InMemoryCustomerDirectory, seed_customers
from billing_assist.infra.handoff_sinks import CollectingHandoffSink
from billing_assist.infra.session_store_memory import InMemorySessionStore


class ScriptedReplies:
    """Respostas de aprovação pré-definidas (uma por prompt)."""

    def __init__(self, *replies: str) -> None:
        self.replies = list(replies)
        self.prompts: list[str] = []

    async def __call__(self, prompt: str) -> str | None:
        self.prompts.append(prompt)
        return self.replies.pop(0) if self.replies else None


@pytest.fixture()
def catalog() -> QuestionCatalog:
    return QuestionCatalog.load(DEFAULT_VERIFIED_QUESTIONS_PATH)


@pytest.fixture()
def knowledge_base() -> str:
    return load_knowledge_base(DEFAULT_FAQ_KNOWLEDGE_BASE_PATH)


@pytest.fixture()
def directory() -> InMemoryCustomerDirectory:
    return InMemoryCustomerDirectory(seed_customers())


@pytest.fixture()
def session_store() -> InMemorySessionStore:
    return InMemorySessionStore()


@pytest.fixture()
def handoff_sink() -> CollectingHandoffSink:
    return CollectingHandoffSink()


@pytest.fixture()
def approval_replies() -> ScriptedReplies:
    return ScriptedReplies()


@pytest.fixture()
def make_orchestrator(
    catalog, knowledge_base, directory, session_store, handoff_sink, approval_replies
) -> Callable[..., SessionOrchestrator]:
    """Orquestrador com colaboradores determinísticos; kwargs substituem peças."""

    def _make(**overrides) -> SessionOrchestrator:
        account = overrides.pop("account", None)
        if account is None:
            account = DirectoryAccountResponder(directory)
        parts = {
            "sessions": AsyncSessionManager(session_store),
            "classifier": KeywordIntentClassifier(catalog),
            "faq": KnowledgeBaseFaqResponder(knowledge_base),
            "account": account,
            "verification": IdentityVerificationEngine(
                directory, tool_selector=PatternToolSelector()
            ),
            "approvals": ApprovalLoopController(
                account, PromptApprovalHandler(approval_replies)
            ),
            "handoff": HandoffAssembler(handoff_sink, summarizer=TranscriptSummarizer()),
            "follow_ups": CatalogFollowUpAdvisor(catalog),
            "catalog": catalog,
        }
        parts.update(overrides)
        return SessionOrchestrator(**parts)

    return _make


@pytest.fixture()
def app_settings() -> Settings:
    return Settings(environment="development", session_store_backend="memory")


@pytest.fixture()
def client(make_orchestrator, app_settings):
    get_settings.cache_clear()
    app = create_app(settings=app_settings, orchestrator=make_orchestrator())
    with TestClient(app) as test_client:
        yield test_client
    get_settings.cache_clear()
