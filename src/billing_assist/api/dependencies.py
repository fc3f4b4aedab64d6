"""Dependências injetadas nas rotas."""

from __future__ import annotations

from fastapi import Request

from billing_assist.application.orchestrator import SessionOrchestrator
from billing_assist.config.settings import Settings


def get_settings(request: Request) -> Settings:
    """Retorna settings da aplicação."""

    return request.app.state.settings


def get_orchestrator(request: Request) -> SessionOrchestrator:
    """Retorna o orquestrador de sessão."""

    return request.app.state.orchestrator
