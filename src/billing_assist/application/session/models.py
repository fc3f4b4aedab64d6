"""Models de sessão: ChatSession.

ChatSession é o agregado raiz de uma conversa.
- Uma sessão = um session_id único
- Histórico append-only (nunca truncado pelo núcleo)
- Persistida via AsyncSessionStore (memory/Redis/Firestore)
"""

from __future__ import annotations

from datetime import datetime, timedelta

from pydantic import BaseModel, Field

from billing_assist.domain.enums import AuthenticationState, MessageRole
from billing_assist.domain.models import AccountContext, ConversationMessage, utcnow
from billing_assist.domain.verification.models import VerificationState


class UserSessionContext(BaseModel):
    """Estado de autenticação do usuário no nível da conversa."""

    auth_state: AuthenticationState = AuthenticationState.ANONYMOUS
    customer_id: str | None = None
    customer_name: str | None = None
    session_expiry: datetime | None = None
    last_interaction: datetime = Field(default_factory=utcnow)

    def is_authenticated(self, now: datetime | None = None) -> bool:
        """Autenticado e dentro da validade."""
        now = now or utcnow()
        return (
            self.auth_state == AuthenticationState.AUTHENTICATED
            and self.session_expiry is not None
            and self.session_expiry > now
        )

    def mark_authenticated(
        self,
        customer_id: str | None,
        customer_name: str | None,
        expiry_minutes: int,
        now: datetime | None = None,
    ) -> None:
        now = now or utcnow()
        self.auth_state = AuthenticationState.AUTHENTICATED
        self.customer_id = customer_id
        self.customer_name = customer_name
        self.session_expiry = now + timedelta(minutes=expiry_minutes)


class ChatSession(BaseModel):
    """Estado completo da conversa com suporte a persistência.

    Invariante: `account_context` só pode existir se o usuário estiver
    autenticado e a autenticação não tiver expirado. Violação força
    reautenticação (ver `has_account_access`).
    """

    session_id: str
    user_context: UserSessionContext = Field(default_factory=UserSessionContext)
    conversation_history: list[ConversationMessage] = Field(default_factory=list)
    auth_context: VerificationState | None = None
    account_context: AccountContext | None = None
    pending_query: str | None = None
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)

    def append(self, role: MessageRole, content: str) -> ConversationMessage:
        message = ConversationMessage(role=role, content=content)
        self.conversation_history.append(message)
        if role == MessageRole.USER:
            self.user_context.last_interaction = message.timestamp
        return message

    def has_account_access(self, now: datetime | None = None) -> bool:
        """True se o usuário pode receber dados de conta agora."""
        return self.user_context.is_authenticated(now)

    def invalidate_access(self) -> None:
        """Força reautenticação: Expired + descarte das sub-sessões."""
        self.user_context.auth_state = AuthenticationState.EXPIRED
        self.user_context.session_expiry = None
        self.account_context = None
        self.auth_context = None

    @property
    def is_locked_out(self) -> bool:
        return self.user_context.auth_state == AuthenticationState.LOCKED_OUT

    @property
    def verification_active(self) -> bool:
        """Sub-fluxo de verificação em andamento (não terminal)."""
        return self.auth_context is not None and not self.auth_context.is_terminal

    def transcript(self) -> str:
        """Histórico renderizado como transcrição plana `role: content`."""
        return "\n".join(f"{m.role.value}: {m.content}" for m in self.conversation_history)
