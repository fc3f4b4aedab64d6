"""Enums canônicos do domínio de atendimento de faturas."""

from __future__ import annotations

from enum import StrEnum


class QuestionCategory(StrEnum):
    """Categoria atribuída pelo classificador a cada mensagem."""

    BILLING_FAQ = "BillingFAQ"
    ACCOUNT_DATA = "AccountData"
    SERVICE_REQUEST = "ServiceRequest"
    OUT_OF_SCOPE = "OutOfScope"
    HUMAN_REQUESTED = "HumanRequested"


class RequiredAction(StrEnum):
    """Sinal ao front end sobre o que o turno exige a seguir."""

    NONE = "None"
    AUTHENTICATION_IN_PROGRESS = "AuthenticationInProgress"
    AUTHENTICATION_FAILED = "AuthenticationFailed"
    CLARIFICATION_NEEDED = "ClarificationNeeded"


class AuthenticationState(StrEnum):
    """Estado de autenticação visto pelo contexto do usuário."""

    ANONYMOUS = "Anonymous"
    IN_PROGRESS = "InProgress"
    VERIFYING = "Verifying"
    AUTHENTICATED = "Authenticated"
    EXPIRED = "Expired"
    LOCKED_OUT = "LockedOut"


class MessageRole(StrEnum):
    """Autor de uma entrada do histórico."""

    USER = "user"
    ASSISTANT = "assistant"
