"""billing_assist: núcleo de orquestração do assistente de faturamento."""

__version__ = "0.1.0"
