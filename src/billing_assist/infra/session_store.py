"""Factory de AsyncSessionStore por backend."""

from __future__ import annotations

from typing import Any

from billing_assist.infra.session_contract_async import AsyncSessionStore
from billing_assist.infra.session_store_firestore import FirestoreSessionStore
from billing_assist.infra.session_store_memory import InMemorySessionStore
from billing_assist.infra.session_store_redis import RedisSessionStore


def create_session_store(
    backend: str,
    client: Any | None = None,
    collection: str = "chat_sessions",
) -> AsyncSessionStore:
    """Cria o store de sessão para o backend escolhido.

    Args:
        backend: memory | redis | firestore
        client: cliente Redis/Firestore já inicializado (obrigatório fora de memory)
        collection: coleção Firestore
    """
    backend = backend.lower()
    if backend == "memory":
        return InMemorySessionStore()
    if backend == "redis":
        if client is None:
            raise ValueError("redis backend requer client")
        return RedisSessionStore(client)
    if backend == "firestore":
        if client is None:
            raise ValueError("firestore backend requer client")
        return FirestoreSessionStore(client, collection=collection)
    raise ValueError(f"Session store backend inválido: {backend}")
