"""Re-exports dos Protocolos de domínio para uso por Application."""

from __future__ import annotations

from billing_assist.domain.protocols.identity import (
    FactorCheck,
    IdentityDirectory,
    IdentityLookup,
    ToolCall,
    ToolSpec,
    VerificationToolSelector,
)
from billing_assist.domain.protocols.responders import (
    AccountDataAnswer,
    AccountDataResponder,
    FaqResponder,
    FollowUpAdvisor,
    HandoffSummary,
    IntentClassifier,
    QuestionClassification,
    ResponderAnswer,
    Summarizer,
)
from billing_assist.domain.protocols.session_store import AsyncSessionStoreProtocol
from billing_assist.domain.protocols.sinks import ApprovalHandler, HandoffSink

__all__ = [
    "AccountDataAnswer",
    "AccountDataResponder",
    "ApprovalHandler",
    "AsyncSessionStoreProtocol",
    "FactorCheck",
    "FaqResponder",
    "FollowUpAdvisor",
    "HandoffSink",
    "HandoffSummary",
    "IdentityDirectory",
    "IdentityLookup",
    "IntentClassifier",
    "QuestionClassification",
    "ResponderAnswer",
    "Summarizer",
    "ToolCall",
    "ToolSpec",
    "VerificationToolSelector",
]
