"""Domínio: enums, modelos, FSM de verificação e contratos."""
