"""Registro de cliente do sistema de informação de clientes (CIS)."""

from __future__ import annotations

from datetime import date

from pydantic import BaseModel, Field


class BillRecord(BaseModel):
    """Fatura de um período de cobrança."""

    period: str  # ex: "2024-02"
    kwh_usage: int
    amount_due: float
    read_type: str = "A"  # A = leitura real, E = estimada
    bill_date: date


class UsageRecord(BaseModel):
    """Consumo de um período de cobrança."""

    period: str
    kwh_usage: int
    avg_daily_kwh: float


class CustomerRecord(BaseModel):
    """Dados de conta que a verificação e o responder de conta leem."""

    account_number: str
    name: str
    phone: str
    email: str
    service_address: str = ""
    last_four_ssn: str
    date_of_birth: date
    account_balance: float = 0.0
    due_date: date
    last_payment_amount: float = 0.0
    last_payment_date: date | None = None
    is_on_autopay: bool = False
    meter_number: str | None = None
    billing_history: list[BillRecord] = Field(default_factory=list)
    usage_history: list[UsageRecord] = Field(default_factory=list)
    delinquency_status: str = "Current"
    eligible_for_extension: bool = False

    @property
    def customer_id(self) -> str:
        return self.account_number

    @property
    def latest_bill(self) -> BillRecord | None:
        return self.billing_history[-1] if self.billing_history else None
