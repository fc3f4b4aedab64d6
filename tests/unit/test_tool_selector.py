"""Testes do seletor determinístico de ferramentas de verificação."""

from __future__ import annotations

import pytest

from billing_assist.application.verification import IdentityVerificationEngine, PatternToolSelector
from billing_assist.domain.verification import VerificationState, VerificationStatus


@pytest.fixture()
def selector() -> PatternToolSelector:
    return PatternToolSelector()


@pytest.fixture()
def anonymous_tools(directory):
    engine = IdentityVerificationEngine(directory)
    return engine.tools_for(VerificationState())


@pytest.fixture()
def verifying_tools(directory):
    engine = IdentityVerificationEngine(directory)
    return engine.tools_for(VerificationState(state=VerificationStatus.VERIFYING))


class TestIdentifierSelection:
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        ("text", "identifier"),
        [
            ("555-1234", "555-1234"),
            ("my phone is 555-5678 thanks", "555-5678"),
            ("account 1234567890", "1234567890"),
            ("john.smith@example.com", "john.smith@example.com"),
        ],
    )
    async def test_finds_identifier(self, selector, anonymous_tools, text, identifier) -> None:
        call = await selector.select(text, VerificationState(), anonymous_tools)
        assert call is not None
        assert call.name == "lookup_customer"
        assert call.arguments == {"identifier": identifier}

    @pytest.mark.asyncio
    async def test_no_identifier_returns_none(self, selector, anonymous_tools) -> None:
        assert await selector.select("what is my balance", VerificationState(), anonymous_tools) is None


class TestFactorSelection:
    @pytest.mark.asyncio
    async def test_ssn_digits(self, selector, verifying_tools) -> None:
        state = VerificationState(state=VerificationStatus.VERIFYING)
        call = await selector.select("it's 1234", state, verifying_tools)
        assert call is not None
        assert call.name == "verify_last_four_ssn"
        assert call.arguments == {"answer": "1234"}

    @pytest.mark.asyncio
    async def test_date_wins_over_digits(self, selector, verifying_tools) -> None:
        """Ano de uma data não deve ser lido como SSN."""
        state = VerificationState(state=VerificationStatus.VERIFYING)
        call = await selector.select("born 03/15/1985", state, verifying_tools)
        assert call is not None
        assert call.name == "verify_date_of_birth"
        assert call.arguments == {"answer": "03/15/1985"}

    @pytest.mark.asyncio
    async def test_written_date(self, selector, verifying_tools) -> None:
        state = VerificationState(state=VerificationStatus.VERIFYING)
        call = await selector.select("July 22, 1990", state, verifying_tools)
        assert call is not None
        assert call.name == "verify_date_of_birth"

    @pytest.mark.asyncio
    async def test_unrelated_text(self, selector, verifying_tools) -> None:
        state = VerificationState(state=VerificationStatus.VERIFYING)
        assert await selector.select("I don't remember", state, verifying_tools) is None
