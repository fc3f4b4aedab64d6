"""Observabilidade: logging JSON, correlation_id e latência."""
