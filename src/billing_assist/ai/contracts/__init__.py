"""Contratos Pydantic das saídas estruturadas dos LLMs."""

from billing_assist.ai.contracts.classification import ClassifierOutput
from billing_assist.ai.contracts.follow_up import FollowUpOutput, FollowUpSuggestion
from billing_assist.ai.contracts.summary import SummaryOutput

__all__ = [
    "ClassifierOutput",
    "FollowUpOutput",
    "FollowUpSuggestion",
    "SummaryOutput",
]
