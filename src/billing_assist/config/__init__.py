"""Configurações centralizadas do billing_assist.

Uso típico:
    from billing_assist.config import get_settings
"""

from billing_assist.config.settings import Settings, get_settings

__all__ = ["Settings", "get_settings"]
