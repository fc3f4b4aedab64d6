"""Package `session`: ciclo de vida e persistência de sessão.

Exports principais:
- ChatSession / UserSessionContext: modelos (de session/models.py)
- AsyncSessionManager: gerenciador assíncrono (de session/manager.py)
- KeyedLock: serialização por session_id (de session/locks.py)
"""

from __future__ import annotations

from billing_assist.application.session.models import ChatSession, UserSessionContext

__all__ = ["AsyncSessionManager", "ChatSession", "KeyedLock", "UserSessionContext"]


def __getattr__(name: str):
    """Lazy import para manager/locks (evita import circular com infra)."""
    if name == "AsyncSessionManager":
        from billing_assist.application.session.manager import AsyncSessionManager

        return AsyncSessionManager
    if name == "KeyedLock":
        from billing_assist.application.session.locks import KeyedLock

        return KeyedLock
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
