"""Camada de aplicação: orquestração, verificação, aprovação e handoff."""
