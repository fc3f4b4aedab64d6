"""Infraestrutura: stores de sessão, diretório de clientes, sinks e handlers."""
