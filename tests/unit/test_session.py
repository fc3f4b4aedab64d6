"""Testes de sessão: modelo, locks por chave e manager."""

from __future__ import annotations

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from billing_assist.application.session import AsyncSessionManager, ChatSession, KeyedLock
from billing_assist.domain.enums import AuthenticationState, MessageRole
from billing_assist.domain.models import AccountContext, utcnow
from billing_assist.domain.verification import VerificationState, VerificationStatus
from billing_assist.infra.session_contract_async import SessionStoreError
from billing_assist.infra.session_store_memory import InMemorySessionStore


class TestChatSession:
    def test_append_updates_last_interaction(self) -> None:
        session = ChatSession(session_id="s1")
        message = session.append(MessageRole.USER, "hello")

        assert session.conversation_history == [message]
        assert session.user_context.last_interaction == message.timestamp

    def test_access_requires_unexpired_authentication(self) -> None:
        session = ChatSession(session_id="s1")
        assert session.has_account_access() is False

        session.user_context.mark_authenticated("1234567890", "John Smith", expiry_minutes=30)
        assert session.has_account_access() is True
        assert session.has_account_access(utcnow() + timedelta(minutes=31)) is False

    def test_invalidate_access_drops_sub_sessions(self) -> None:
        """Invalidação descarta account_context e auth_context juntos."""
        session = ChatSession(session_id="s1")
        session.user_context.mark_authenticated("1234567890", "John Smith", expiry_minutes=30)
        session.account_context = AccountContext(sub_session_id="x", customer_id="1234567890")
        session.auth_context = VerificationState(state=VerificationStatus.AUTHENTICATED)

        session.invalidate_access()

        assert session.user_context.auth_state == AuthenticationState.EXPIRED
        assert session.account_context is None
        assert session.auth_context is None
        assert session.has_account_access() is False

    def test_verification_active_only_for_non_terminal(self) -> None:
        session = ChatSession(session_id="s1")
        assert session.verification_active is False
        session.auth_context = VerificationState(state=VerificationStatus.VERIFYING)
        assert session.verification_active is True
        session.auth_context = VerificationState(state=VerificationStatus.LOCKED_OUT)
        assert session.verification_active is False

    def test_transcript(self) -> None:
        session = ChatSession(session_id="s1")
        session.append(MessageRole.USER, "hi")
        session.append(MessageRole.ASSISTANT, "hello")
        assert session.transcript() == "user: hi\nassistant: hello"

    def test_json_roundtrip_with_nested_contexts(self) -> None:
        session = ChatSession(session_id="s1", pending_query="What is my balance?")
        session.auth_context = VerificationState(
            state=VerificationStatus.VERIFYING, failed_attempts=2
        )
        restored = ChatSession.model_validate_json(session.model_dump_json())
        assert restored.auth_context == session.auth_context
        assert restored.pending_query == "What is my balance?"


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_is_serialized(self) -> None:
        """Mesma chave: segundo holder espera o primeiro terminar."""
        locks = KeyedLock()
        events: list[str] = []

        async def worker(name: str) -> None:
            async with locks.hold("s1"):
                events.append(f"{name}-start")
                await asyncio.sleep(0.01)
                events.append(f"{name}-end")

        await asyncio.gather(worker("a"), worker("b"))

        assert events == ["a-start", "a-end", "b-start", "b-end"]

    @pytest.mark.asyncio
    async def test_different_keys_run_in_parallel(self) -> None:
        locks = KeyedLock()
        inside = asyncio.Event()
        release = asyncio.Event()

        async def first() -> None:
            async with locks.hold("s1"):
                inside.set()
                await release.wait()

        task = asyncio.create_task(first())
        await inside.wait()
        async with locks.hold("s2"):
            assert locks.is_locked("s1")
        release.set()
        await task

    @pytest.mark.asyncio
    async def test_unused_locks_are_released(self) -> None:
        locks = KeyedLock()
        async with locks.hold("s1"):
            assert len(locks) == 1
        assert len(locks) == 0
        assert locks.is_locked("s1") is False


class TestAsyncSessionManager:
    @pytest.mark.asyncio
    async def test_get_or_create_does_not_persist(self) -> None:
        store = InMemorySessionStore()
        manager = AsyncSessionManager(store)

        session = await manager.get_or_create("new-session")

        assert session.session_id == "new-session"
        assert await store.exists("new-session") is False

    @pytest.mark.asyncio
    async def test_persist_then_load(self) -> None:
        store = InMemorySessionStore()
        manager = AsyncSessionManager(store, ttl_seconds=60)
        session = await manager.get_or_create("s1")
        session.append(MessageRole.USER, "hi")

        await manager.persist(session)
        loaded = await manager.get("s1")

        assert loaded is not None
        assert loaded.conversation_history[0].content == "hi"

    @pytest.mark.asyncio
    async def test_persist_propagates_store_errors(self) -> None:
        store = AsyncMock()
        store.save.side_effect = SessionStoreError("down")
        manager = AsyncSessionManager(store)

        with pytest.raises(SessionStoreError):
            await manager.persist(ChatSession(session_id="s1"))

    @pytest.mark.asyncio
    async def test_persist_uses_configured_ttl(self) -> None:
        store = AsyncMock()
        manager = AsyncSessionManager(store, ttl_seconds=900)
        session = ChatSession(session_id="s1")

        await manager.persist(session)

        store.save.assert_awaited_once_with(session, ttl_seconds=900)
