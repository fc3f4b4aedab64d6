"""Colaboradores de IA: classificador, responders, resumidor e sugestões.

Cada contrato tem uma implementação via OpenAI e uma determinística
(usada quando OPENAI_ENABLED=false e em testes).
"""
