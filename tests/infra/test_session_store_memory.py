"""Testes para InMemorySessionStore."""

from __future__ import annotations

import pytest

from billing_assist.application.session import ChatSession
from billing_assist.domain.enums import MessageRole
from billing_assist.infra.session_store import create_session_store
from billing_assist.infra.session_store_memory import InMemorySessionStore


class TestInMemorySessionStore:
    @pytest.mark.asyncio
    async def test_save_and_load(self) -> None:
        """Deve salvar sessão em memória."""
        store = InMemorySessionStore()
        session = ChatSession(session_id="s1")
        session.append(MessageRole.USER, "hello")

        await store.save(session)
        loaded = await store.load("s1")

        assert loaded is not None
        assert loaded.conversation_history[0].content == "hello"

    @pytest.mark.asyncio
    async def test_stored_copy_is_isolated(self) -> None:
        """Mutações do chamador não vazam para o armazenado."""
        store = InMemorySessionStore()
        session = ChatSession(session_id="s1")
        await store.save(session)

        session.append(MessageRole.USER, "not saved")
        loaded = await store.load("s1")
        loaded.append(MessageRole.USER, "also not saved")

        again = await store.load("s1")
        assert again.conversation_history == []

    @pytest.mark.asyncio
    async def test_load_missing(self) -> None:
        assert await InMemorySessionStore().load("nope") is None

    @pytest.mark.asyncio
    async def test_expired_session_is_dropped(self) -> None:
        """Sessão com TTL vencido não é retornada."""
        store = InMemorySessionStore()
        await store.save(ChatSession(session_id="s1"), ttl_seconds=-1)

        assert await store.load("s1") is None
        assert len(store) == 0

    @pytest.mark.asyncio
    async def test_delete_and_exists(self) -> None:
        store = InMemorySessionStore()
        await store.save(ChatSession(session_id="s1"))

        assert await store.exists("s1") is True
        assert await store.delete("s1") is True
        assert await store.delete("s1") is False
        assert await store.exists("s1") is False


class TestCreateSessionStore:
    def test_memory_backend(self) -> None:
        assert isinstance(create_session_store("MEMORY"), InMemorySessionStore)

    def test_redis_requires_client(self) -> None:
        with pytest.raises(ValueError):
            create_session_store("redis")

    def test_unknown_backend(self) -> None:
        with pytest.raises(ValueError):
            create_session_store("dynamo")
