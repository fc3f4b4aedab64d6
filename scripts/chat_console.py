#!/usr/bin/env python
"""Console interativo do assistente de faturamento.

Uma sessão por execução; aprovações de pagamento são pedidas no terminal.
Comandos: `logout` encerra a autenticação, `quit`/`exit` sai.

Uso:
    python scripts/chat_console.py
    OPENAI_ENABLED=true OPENAI_API_KEY=... python scripts/chat_console.py
"""

from __future__ import annotations

import asyncio
import uuid

from billing_assist.application.factories.orchestrator_factory import build_orchestrator
from billing_assist.config.settings import get_settings
from billing_assist.infra.approval_handlers import ConsoleApprovalHandler
from billing_assist.observability.logging import configure_logging

BANNER = """Utility Billing Assistant
Ask about payment options, your balance, usage, or anything billing related.
Test accounts: 555-1234 (SSN 1234), 555-5678 (SSN 5678), 555-9999 (SSN 9999).
Type 'logout' to sign out, 'quit' to exit.
"""


async def main() -> None:
    settings = get_settings()
    configure_logging(settings.log_level, settings.service_name)
    orchestrator = build_orchestrator(settings, approval_handler=ConsoleApprovalHandler())
    session_id = uuid.uuid4().hex

    print(BANNER)
    while True:
        try:
            text = await asyncio.to_thread(input, "You: ")
        except (EOFError, KeyboardInterrupt):
            break

        command = text.strip().lower()
        if command in {"quit", "exit"}:
            break
        if command == "logout":
            logged_out = await orchestrator.logout(session_id)
            print("Assistant: You've been signed out.\n" if logged_out else "Assistant: Nothing to sign out.\n")
            continue

        response = await orchestrator.process_message(session_id, text)
        if not response.message:
            continue
        print(f"Assistant: {response.message}")
        if response.suggested_follow_ups:
            print("  You might also ask:")
            for suggestion in response.suggested_follow_ups:
                print(f"  - {suggestion.suggested_question}")
        print()

    await orchestrator.handoff.drain()
    print("Goodbye!")


if __name__ == "__main__":
    asyncio.run(main())
