"""Factory para construção do SessionOrchestrator.

Responsabilidades:
- Conhecer infra e settings
- Escolher colaboradores OpenAI ou determinísticos (OPENAI_ENABLED)
- Retornar um `SessionOrchestrator` pronto

Não conter lógica de negócio.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from billing_assist.ai.account_responder import DirectoryAccountResponder, OpenAIAccountResponder
from billing_assist.ai.classifier import KeywordIntentClassifier, OpenAIIntentClassifier
from billing_assist.ai.faq import (
    KnowledgeBaseFaqResponder,
    OpenAIFaqResponder,
    load_knowledge_base,
)
from billing_assist.ai.follow_ups import CatalogFollowUpAdvisor, OpenAIFollowUpAdvisor
from billing_assist.ai.summarizer import OpenAISummarizer, TranscriptSummarizer
from billing_assist.ai.verification_selector import OpenAIToolSelector
from billing_assist.application.approval import ApprovalLoopController
from billing_assist.application.handoff import HandoffAssembler
from billing_assist.application.orchestrator import SessionOrchestrator
from billing_assist.application.session.manager import AsyncSessionManager
from billing_assist.application.verification import (
    IdentityVerificationEngine,
    PatternToolSelector,
)
from billing_assist.config.settings import Settings, get_settings
from billing_assist.domain.catalog import QuestionCatalog
from billing_assist.infra.approval_handlers import DenyAllApprovalHandler
from billing_assist.infra.customer_directory import InMemoryCustomerDirectory
from billing_assist.infra.handoff_sinks import FirestoreHandoffSink, LoggingHandoffSink
from billing_assist.infra.session_store import create_session_store
from billing_assist.observability.logging import get_logger

if TYPE_CHECKING:
    from billing_assist.ai.openai_client import OpenAIClientManager
    from billing_assist.domain.protocols import (
        ApprovalHandler,
        AsyncSessionStoreProtocol,
        HandoffSink,
    )

logger = get_logger(__name__)


def _create_redis_client(redis_url: str | None) -> Any:
    """Cria cliente Redis assíncrono se URL disponível."""
    if not redis_url:
        raise ValueError("SESSION_STORE_BACKEND=redis mas REDIS_URL não configurado")
    import redis.asyncio as redis

    return redis.from_url(redis_url, decode_responses=True)


def _create_firestore_client(settings: Settings) -> Any:
    from google.cloud import firestore

    return firestore.AsyncClient(
        project=settings.firestore_project_id,
        database=settings.firestore_database_id,
    )


def create_session_store_from_settings(
    settings: Settings, firestore_client: Any | None = None
) -> AsyncSessionStoreProtocol:
    """Seleciona o backend de sessão configurado."""
    backend = settings.session_store_backend.lower()
    if backend == "redis":
        return create_session_store("redis", client=_create_redis_client(settings.redis_url))
    if backend == "firestore":
        client = firestore_client or _create_firestore_client(settings)
        return create_session_store(
            "firestore", client=client, collection=settings.sessions_collection
        )
    return create_session_store("memory")


def create_handoff_sink_from_settings(
    settings: Settings, firestore_client: Any | None = None
) -> HandoffSink:
    if settings.handoff_sink_backend.lower() == "firestore":
        client = firestore_client or _create_firestore_client(settings)
        return FirestoreHandoffSink(client, collection=settings.handoffs_collection)
    return LoggingHandoffSink()


def _create_openai_client(settings: Settings) -> OpenAIClientManager:
    from billing_assist.ai.openai_client import OpenAIClientManager

    return OpenAIClientManager(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        timeout_seconds=float(settings.openai_timeout_seconds),
    )


def build_orchestrator(
    settings: Settings | None = None,
    *,
    session_store: AsyncSessionStoreProtocol | None = None,
    approval_handler: ApprovalHandler | None = None,
    handoff_sink: HandoffSink | None = None,
    directory: InMemoryCustomerDirectory | None = None,
    openai_client: OpenAIClientManager | None = None,
) -> SessionOrchestrator:
    """Constrói e retorna `SessionOrchestrator` usando infra/settings.

    Parâmetros explícitos têm prioridade; quando ausentes, são resolvidos
    via settings.
    """
    settings = settings or get_settings()

    errors = settings.validate_all()
    if errors:
        raise ValueError(
            f"Configuração inválida para '{settings.environment}': {'; '.join(errors)}"
        )

    firestore_client = None
    if session_store is None:
        if settings.session_store_backend.lower() == "firestore":
            firestore_client = _create_firestore_client(settings)
        session_store = create_session_store_from_settings(settings, firestore_client)
    if handoff_sink is None:
        handoff_sink = create_handoff_sink_from_settings(settings, firestore_client)

    catalog = QuestionCatalog.load(settings.verified_questions_path)
    knowledge_base = load_knowledge_base(settings.faq_knowledge_base_path)
    directory = directory or InMemoryCustomerDirectory()
    pattern_selector = PatternToolSelector()

    if settings.openai_enabled:
        client = openai_client or _create_openai_client(settings)
        classifier = OpenAIIntentClassifier(client, catalog)
        faq = OpenAIFaqResponder(client, knowledge_base)
        account = OpenAIAccountResponder(client, directory)
        summarizer = OpenAISummarizer(client)
        follow_ups = OpenAIFollowUpAdvisor(client, catalog)
        selector = OpenAIToolSelector(client, fallback=pattern_selector)
    else:
        classifier = KeywordIntentClassifier(catalog)
        faq = KnowledgeBaseFaqResponder(knowledge_base)
        account = DirectoryAccountResponder(directory)
        summarizer = TranscriptSummarizer()
        follow_ups = CatalogFollowUpAdvisor(catalog)
        selector = pattern_selector

    approvals = ApprovalLoopController(
        account,
        approval_handler or DenyAllApprovalHandler(),
        max_iterations=settings.approval_max_iterations,
    )

    logger.info(
        "orchestrator_built",
        extra={
            "session_store_backend": settings.session_store_backend,
            "handoff_sink_backend": settings.handoff_sink_backend,
            "openai_enabled": settings.openai_enabled,
            "verified_questions": len(catalog),
        },
    )

    return SessionOrchestrator(
        sessions=AsyncSessionManager(session_store, ttl_seconds=settings.session_ttl_seconds),
        classifier=classifier,
        faq=faq,
        account=account,
        verification=IdentityVerificationEngine(directory, tool_selector=selector),
        approvals=approvals,
        handoff=HandoffAssembler(handoff_sink, summarizer=summarizer),
        follow_ups=follow_ups if settings.follow_ups_enabled else None,
        catalog=catalog,
        confidence_threshold=settings.classifier_confidence_threshold,
        auth_expiry_minutes=settings.auth_session_expiry_minutes,
        turn_timeout_seconds=settings.turn_timeout_seconds,
        follow_up_timeout_seconds=settings.follow_up_timeout_seconds,
    )
