"""Testes de validação de Settings."""

from __future__ import annotations

from billing_assist.config.settings import Settings


class TestSessionStoreValidation:
    def test_memory_allowed_in_development(self) -> None:
        """Memory é permitido em desenvolvimento."""
        settings = Settings(environment="development", session_store_backend="memory")
        assert settings.validate_session_store_config() == []

    def test_memory_forbidden_in_production(self) -> None:
        """Memory é proibido em produção."""
        settings = Settings(environment="production", session_store_backend="memory")
        errors = settings.validate_session_store_config()
        assert any("proibido" in e for e in errors)

    def test_redis_requires_url(self) -> None:
        """Redis sem REDIS_URL deve falhar."""
        settings = Settings(session_store_backend="redis", redis_url=None)
        errors = settings.validate_session_store_config()
        assert any("REDIS_URL" in e for e in errors)

    def test_invalid_backend(self) -> None:
        settings = Settings(session_store_backend="postgres")
        assert settings.validate_session_store_config()


class TestOrchestrationValidation:
    def test_defaults_are_valid(self) -> None:
        """Defaults devem passar em todas as validações (dev)."""
        assert Settings(environment="development").validate_all() == []

    def test_threshold_out_of_range(self) -> None:
        settings = Settings(classifier_confidence_threshold=1.5)
        assert any("THRESHOLD" in e for e in settings.validate_orchestration_config())

    def test_approval_iterations_must_be_positive(self) -> None:
        settings = Settings(approval_max_iterations=0)
        assert any("APPROVAL_MAX_ITERATIONS" in e for e in settings.validate_all())

    def test_openai_enabled_requires_key(self) -> None:
        """OPENAI_ENABLED=true sem chave é erro de configuração."""
        settings = Settings(openai_enabled=True, openai_api_key=None)
        assert any("OPENAI_API_KEY" in e for e in settings.validate_openai_config())

    def test_invalid_handoff_sink(self) -> None:
        settings = Settings(handoff_sink_backend="kafka")
        assert any("HANDOFF_SINK_BACKEND" in e for e in settings.validate_all())


def test_environment_flags() -> None:
    assert Settings(environment="prod").is_production
    assert Settings(environment="stage").is_staging
    assert Settings(environment="local").is_development
