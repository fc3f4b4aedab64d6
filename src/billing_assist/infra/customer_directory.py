"""Diretório de clientes em memória (CIS de protótipo).

Três clientes de teste com estados de conta distintos:
- 555-1234 John Smith: saldo em aberto, em dia
- 555-5678 Maria Garcia: saldo zero, débito automático
- 555-9999 Robert Johnson: vencido
"""

from __future__ import annotations

import logging
import re
from datetime import date, timedelta

from dateutil import parser as date_parser

from billing_assist.domain.customer import BillRecord, CustomerRecord, UsageRecord
from billing_assist.domain.protocols.identity import FactorCheck, IdentityDirectory, IdentityLookup
from billing_assist.domain.verification.states import VerificationFactor
from billing_assist.observability.logging import get_logger

logger: logging.Logger = get_logger(__name__)

_NON_DIGITS = re.compile(r"\D")


def parse_date_answer(answer: str) -> date | None:
    """Interpreta uma resposta de data de nascimento (MM/DD/YYYY, ISO, por extenso)."""
    text = answer.strip()
    if not text:
        return None
    try:
        return date_parser.parse(text, fuzzy=True, dayfirst=False).date()
    except (ValueError, OverflowError):
        return None


def seed_customers(today: date | None = None) -> list[CustomerRecord]:
    """Clientes de teste com datas relativas a `today`."""
    today = today or date.today()
    return [
        CustomerRecord(
            account_number="1234567890",
            name="John Smith",
            phone="555-1234",
            email="john.smith@example.com",
            service_address="123 Main St, Anytown, ST 12345",
            last_four_ssn="1234",
            date_of_birth=date(1985, 3, 15),
            account_balance=187.43,
            due_date=today + timedelta(days=12),
            last_payment_amount=142.50,
            last_payment_date=today - timedelta(days=18),
            is_on_autopay=False,
            meter_number="MTR-00123456",
            billing_history=[
                BillRecord(period="2024-01", kwh_usage=892, amount_due=142.50,
                           read_type="A", bill_date=today - timedelta(days=48)),
                BillRecord(period="2024-02", kwh_usage=1247, amount_due=187.43,
                           read_type="A", bill_date=today - timedelta(days=18)),
            ],
            usage_history=[
                UsageRecord(period="2024-01", kwh_usage=892, avg_daily_kwh=28.8),
                UsageRecord(period="2024-02", kwh_usage=1247, avg_daily_kwh=44.5),
            ],
            delinquency_status="Current",
            eligible_for_extension=True,
        ),
        CustomerRecord(
            account_number="9876543210",
            name="Maria Garcia",
            phone="555-5678",
            email="maria.garcia@example.com",
            service_address="456 Oak Ave, Anytown, ST 12345",
            last_four_ssn="5678",
            date_of_birth=date(1990, 7, 22),
            account_balance=0.0,
            due_date=today + timedelta(days=5),
            last_payment_amount=98.50,
            last_payment_date=today - timedelta(days=3),
            is_on_autopay=True,
            meter_number="MTR-00789012",
            billing_history=[
                BillRecord(period="2024-01", kwh_usage=654, amount_due=98.50,
                           read_type="A", bill_date=today - timedelta(days=33)),
                BillRecord(period="2024-02", kwh_usage=687, amount_due=102.30,
                           read_type="A", bill_date=today - timedelta(days=3)),
            ],
            usage_history=[
                UsageRecord(period="2024-01", kwh_usage=654, avg_daily_kwh=23.4),
                UsageRecord(period="2024-02", kwh_usage=687, avg_daily_kwh=24.5),
            ],
            delinquency_status="Current",
            eligible_for_extension=False,
        ),
        CustomerRecord(
            account_number="5555555555",
            name="Robert Johnson",
            phone="555-9999",
            email="rjohnson@example.com",
            service_address="789 Elm St, Anytown, ST 12345",
            last_four_ssn="9999",
            date_of_birth=date(1972, 11, 8),
            account_balance=423.67,
            due_date=today - timedelta(days=5),
            last_payment_amount=150.00,
            last_payment_date=today - timedelta(days=45),
            is_on_autopay=False,
            meter_number="MTR-00345678",
            billing_history=[
                BillRecord(period="2024-01", kwh_usage=1456, amount_due=218.40,
                           read_type="E", bill_date=today - timedelta(days=60)),
                BillRecord(period="2024-02", kwh_usage=1523, amount_due=228.45,
                           read_type="A", bill_date=today - timedelta(days=30)),
            ],
            usage_history=[
                UsageRecord(period="2024-01", kwh_usage=1456, avg_daily_kwh=52.0),
                UsageRecord(period="2024-02", kwh_usage=1523, avg_daily_kwh=54.4),
            ],
            delinquency_status="PastDue",
            eligible_for_extension=True,
        ),
    ]


class InMemoryCustomerDirectory(IdentityDirectory):
    """IdentityDirectory sobre registros em memória.

    Lookup por telefone, email (case-insensitive) ou número de conta.
    """

    def __init__(self, customers: list[CustomerRecord] | None = None) -> None:
        records = customers if customers is not None else seed_customers()
        self._by_phone = {c.phone: c for c in records}
        self._by_email = {c.email.lower(): c for c in records}
        self._by_account = {c.account_number: c for c in records}

    def find_by_identifier(self, identifier: str) -> CustomerRecord | None:
        key = identifier.strip()
        return (
            self._by_phone.get(key)
            or self._by_email.get(key.lower())
            or self._by_account.get(key)
        )

    def get_customer(self, customer_id: str) -> CustomerRecord | None:
        return self._by_account.get(customer_id)

    async def lookup_identity(self, identifier: str) -> IdentityLookup:
        customer = self.find_by_identifier(identifier)
        if customer is None:
            logger.info("customer_lookup_not_found")
            return IdentityLookup(found=False)
        return IdentityLookup(
            found=True, customer_id=customer.customer_id, customer_name=customer.name
        )

    async def verify_factor(
        self, factor: VerificationFactor, answer: str, identifier: str
    ) -> FactorCheck:
        customer = self.find_by_identifier(identifier)
        if customer is None:
            return FactorCheck(correct=False, customer_found=False)

        if factor == VerificationFactor.SSN:
            return FactorCheck(correct=_NON_DIGITS.sub("", answer) == customer.last_four_ssn)

        parsed = parse_date_answer(answer)
        return FactorCheck(correct=parsed is not None and parsed == customer.date_of_birth)
