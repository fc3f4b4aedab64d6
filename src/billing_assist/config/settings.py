"""Configurações da aplicação via variáveis de ambiente.

Todas as configurações são carregadas de env vars.
Nunca hardcode secrets ou valores sensíveis.
"""

from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

# Arquivos de dados empacotados junto com o pacote
DATA_DIR: Path = Path(__file__).resolve().parent.parent / "data"
DEFAULT_VERIFIED_QUESTIONS_PATH: str = str(DATA_DIR / "verified_questions.json")
DEFAULT_FAQ_KNOWLEDGE_BASE_PATH: str = str(DATA_DIR / "faq_knowledge_base.md")


class Settings(BaseSettings):
    """Configurações lidas do ambiente.

    Comentários em PT-BR são obrigatórios por diretriz do projeto.
    """

    model_config = SettingsConfigDict(
        env_prefix="",
        case_sensitive=False,
        extra="ignore",
    )

    # Aplicação
    service_name: str = "billing_assist"
    version: str = "0.1.0"
    environment: str = "development"
    log_level: str = "INFO"

    # Session store
    session_store_backend: str = "memory"  # memory | redis | firestore
    session_ttl_seconds: int = 7200
    redis_url: str | None = None
    firestore_project_id: str | None = None
    firestore_database_id: str = "(default)"
    sessions_collection: str = "chat_sessions"
    handoffs_collection: str = "handoffs"

    # Orquestração de turno
    classifier_confidence_threshold: float = 0.5  # Abaixo disso → OutOfScope
    auth_session_expiry_minutes: int = 30  # Validade da autenticação
    approval_max_iterations: int = 5  # Limite do loop de aprovação
    turn_timeout_seconds: float = 60.0  # Timeout total de um turno
    follow_up_timeout_seconds: float = 5.0  # Timeout de sugestões (best-effort)
    follow_ups_enabled: bool = True

    # Handoff humano
    handoff_sink_backend: str = "log"  # log | firestore

    # OpenAI / IA
    openai_api_key: str | None = None
    openai_model: str = "gpt-4o-mini"  # Modelo padrão (otimizado para latência)
    openai_timeout_seconds: int = 10
    openai_enabled: bool = False  # Feature flag: habilita LLM (fail-safe: false)

    # Dados de referência
    verified_questions_path: str = DEFAULT_VERIFIED_QUESTIONS_PATH
    faq_knowledge_base_path: str = DEFAULT_FAQ_KNOWLEDGE_BASE_PATH

    def validate_openai_config(self) -> list[str]:
        """Valida configuração de OpenAI.

        Se openai_enabled=True, verifica se OPENAI_API_KEY está configurado.
        Retorna lista de erros (vazia = OK).
        """
        errors: list[str] = []
        if self.openai_enabled and not self.openai_api_key:
            errors.append("OPENAI_ENABLED=true requer OPENAI_API_KEY configurado")
        if self.openai_timeout_seconds <= 0:
            errors.append("OPENAI_TIMEOUT_SECONDS deve ser > 0")
        return errors

    def validate_session_store_config(self) -> list[str]:
        """Valida backend de session store por ambiente.

        Em staging/prod, memory é proibido (instâncias stateless).
        Retorna lista de erros (vazia = tudo OK).
        """
        errors: list[str] = []
        backend = self.session_store_backend.lower()

        valid_backends = {"memory", "redis", "firestore"}
        if backend not in valid_backends:
            errors.append(
                f"SESSION_STORE_BACKEND '{backend}' inválido. Valores válidos: {valid_backends}"
            )

        if backend == "memory" and (self.is_staging or self.is_production):
            errors.append(
                "SESSION_STORE_BACKEND=memory é proibido em staging/production. "
                "Use 'redis' ou 'firestore'."
            )

        if backend == "redis" and not self.redis_url:
            errors.append("SESSION_STORE_BACKEND=redis requer REDIS_URL configurado")

        if self.session_ttl_seconds <= 0:
            errors.append("SESSION_TTL_SECONDS deve ser > 0")

        return errors

    def validate_orchestration_config(self) -> list[str]:
        """Valida limites do orquestrador, verificação e aprovação."""
        errors: list[str] = []
        if not 0 < self.classifier_confidence_threshold <= 1:
            errors.append("CLASSIFIER_CONFIDENCE_THRESHOLD deve estar entre 0 e 1")
        if self.auth_session_expiry_minutes <= 0:
            errors.append("AUTH_SESSION_EXPIRY_MINUTES deve ser > 0")
        if self.approval_max_iterations < 1:
            errors.append("APPROVAL_MAX_ITERATIONS deve ser >= 1")
        if self.turn_timeout_seconds <= 0:
            errors.append("TURN_TIMEOUT_SECONDS deve ser > 0")
        if self.follow_up_timeout_seconds <= 0:
            errors.append("FOLLOW_UP_TIMEOUT_SECONDS deve ser > 0")
        if self.handoff_sink_backend.lower() not in {"log", "firestore"}:
            errors.append("HANDOFF_SINK_BACKEND inválido: use log | firestore")
        return errors

    def validate_all(self) -> list[str]:
        """Agrega todas as validações (usado no bootstrap)."""
        return (
            self.validate_session_store_config()
            + self.validate_openai_config()
            + self.validate_orchestration_config()
        )

    @property
    def is_production(self) -> bool:
        """Retorna True se ambiente é produção."""
        return self.environment.lower() in ("production", "prod")

    @property
    def is_staging(self) -> bool:
        """Retorna True se ambiente é staging."""
        return self.environment.lower() in ("staging", "stage")

    @property
    def is_development(self) -> bool:
        """Retorna True se ambiente é desenvolvimento."""
        return self.environment.lower() in ("development", "dev", "local")


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Retorna uma instância cacheada de Settings.

    A cache garante que mesmo múltiplas injeções não criam novos objetos.
    """
    return Settings()
