"""Ferramentas de dados de conta sobre um CustomerRecord.

Compartilhadas pelos dois responders de conta (determinístico e LLM).
Cada ferramenta devolve um dict serializável com a chave `message`
pronta para o usuário.
"""

from __future__ import annotations

import json
import uuid
from datetime import date
from typing import TYPE_CHECKING, Any

from billing_assist.domain.protocols.identity import ToolSpec

if TYPE_CHECKING:
    from billing_assist.domain.customer import CustomerRecord

MAKE_PAYMENT = "make_payment"

# Ferramentas que exigem confirmação humana antes de executar
APPROVAL_REQUIRED: frozenset[str] = frozenset({MAKE_PAYMENT})

_NO_ARGS: dict[str, Any] = {"type": "object", "properties": {}}

ACCOUNT_TOOL_SPECS: list[ToolSpec] = [
    ToolSpec(
        name="get_account_balance",
        description="Get the current account balance, due date, and last payment info",
        parameters=_NO_ARGS,
    ),
    ToolSpec(
        name="get_payment_status",
        description="Check if a recent payment has been received",
        parameters=_NO_ARGS,
    ),
    ToolSpec(
        name="get_due_date",
        description="Get the bill due date and days until due",
        parameters=_NO_ARGS,
    ),
    ToolSpec(
        name="get_usage_analysis",
        description="Compare current usage to previous period and analyze changes",
        parameters=_NO_ARGS,
    ),
    ToolSpec(
        name="get_autopay_status",
        description="Check if the customer is enrolled in AutoPay",
        parameters=_NO_ARGS,
    ),
    ToolSpec(
        name="get_bill_details",
        description="Get details of the most recent bill",
        parameters=_NO_ARGS,
    ),
    ToolSpec(
        name="get_meter_read_type",
        description="Check if the last meter read was actual or estimated",
        parameters=_NO_ARGS,
    ),
    ToolSpec(
        name="get_billing_history",
        description="Get a list of recent bills",
        parameters=_NO_ARGS,
    ),
    ToolSpec(
        name=MAKE_PAYMENT,
        description="Submit a payment for the customer's bill (requires customer approval)",
        parameters={
            "type": "object",
            "properties": {
                "amount": {"type": "number"},
                "billing_period": {"type": "string"},
            },
            "required": ["amount"],
        },
    ),
]


def _money(value: float) -> str:
    return f"${value:,.2f}"


def _long_date(value: date) -> str:
    return f"{value:%B} {value.day}, {value.year}"


class UnknownToolError(KeyError):
    """Ferramenta de conta inexistente."""


class AccountTools:
    """Consultas e ações sobre a conta de um cliente verificado."""

    def __init__(self, customer: CustomerRecord, today: date | None = None) -> None:
        self._customer = customer
        self._today = today or date.today()

    @property
    def customer(self) -> CustomerRecord:
        return self._customer

    def invoke(self, name: str, arguments: dict[str, Any] | None = None) -> dict[str, Any]:
        """Executa uma ferramenta pelo nome (usado pelo responder LLM)."""
        if name not in {spec.name for spec in ACCOUNT_TOOL_SPECS}:
            raise UnknownToolError(name)
        method = getattr(self, name)
        return method(**(arguments or {}))

    @staticmethod
    def to_json(result: dict[str, Any]) -> str:
        return json.dumps(result, default=str)

    def get_account_balance(self) -> dict[str, Any]:
        c = self._customer
        days_until_due = (c.due_date - self._today).days
        if days_until_due < 0:
            status = "Past Due"
        elif days_until_due == 0:
            status = "Due Today"
        elif c.account_balance == 0:
            status = "Paid"
        else:
            status = "Current"

        message = (
            f"Your current balance is {_money(c.account_balance)}, "
            f"due on {_long_date(c.due_date)}."
        )
        if status == "Past Due":
            message = (
                f"Your current balance is {_money(c.account_balance)}, which was due on "
                f"{_long_date(c.due_date)} and is now past due."
            )
        elif status == "Paid":
            message = "Your current balance is $0.00. You're all paid up."
        if c.last_payment_date is not None:
            message += (
                f" Your last payment of {_money(c.last_payment_amount)} was received on "
                f"{_long_date(c.last_payment_date)}."
            )

        return {
            "balance": c.account_balance,
            "formatted_balance": _money(c.account_balance),
            "due_date": c.due_date.isoformat(),
            "days_until_due": days_until_due,
            "status": status,
            "message": message,
        }

    def get_payment_status(self) -> dict[str, Any]:
        c = self._customer
        if c.last_payment_date is None:
            return {"payment_received": False, "message": "We have no payments on record yet."}

        days_since = (self._today - c.last_payment_date).days
        recent = days_since <= 30
        if recent:
            message = (
                f"Payment of {_money(c.last_payment_amount)} was received on "
                f"{_long_date(c.last_payment_date)}."
            )
        else:
            message = (
                f"Last payment of {_money(c.last_payment_amount)} was received {days_since} "
                f"days ago on {_long_date(c.last_payment_date)}."
            )
        return {
            "payment_received": recent,
            "last_payment_amount": c.last_payment_amount,
            "days_since_payment": days_since,
            "message": message,
        }

    def get_due_date(self) -> dict[str, Any]:
        due = self._customer.due_date
        days_until_due = (due - self._today).days
        if days_until_due < 0:
            message = (
                f"Your bill was due on {_long_date(due)} and is "
                f"{abs(days_until_due)} days past due."
            )
        elif days_until_due == 0:
            message = f"Your bill is due today, {_long_date(due)}."
        else:
            message = (
                f"Your bill is due on {_long_date(due)}, which is "
                f"{days_until_due} days from now."
            )
        return {
            "due_date": due.isoformat(),
            "days_until_due": days_until_due,
            "is_past_due": days_until_due < 0,
            "message": message,
        }

    def get_usage_analysis(self) -> dict[str, Any]:
        history = self._customer.usage_history
        if len(history) < 2:
            current = history[0].kwh_usage if history else 0
            return {
                "current_kwh": current,
                "trend": "Unknown",
                "message": "Insufficient usage history for comparison.",
            }

        current, previous = history[-1], history[-2]
        difference = current.kwh_usage - previous.kwh_usage
        percent = (difference / previous.kwh_usage * 100) if previous.kwh_usage > 0 else 0.0

        if percent > 20:
            trend = "Significantly Higher"
            message = (
                f"Your usage increased by {abs(percent):.0f}% ({difference} kWh) compared to "
                "last month. This could be due to seasonal changes, new appliances, or "
                "increased occupancy."
            )
        elif percent > 5:
            trend = "Higher"
            message = f"Your usage is up {abs(percent):.0f}% ({difference} kWh) from last month."
        elif percent < -20:
            trend = "Significantly Lower"
            message = (
                f"Your usage decreased by {abs(percent):.0f}% ({abs(difference)} kWh) "
                "compared to last month."
            )
        elif percent < -5:
            trend = "Lower"
            message = (
                f"Your usage is down {abs(percent):.0f}% ({abs(difference)} kWh) from last month."
            )
        else:
            trend = "Similar"
            message = "Your usage is similar to last month."

        return {
            "current_kwh": current.kwh_usage,
            "previous_kwh": previous.kwh_usage,
            "difference_kwh": difference,
            "percent_change": round(percent, 1),
            "trend": trend,
            "message": message,
        }

    def get_autopay_status(self) -> dict[str, Any]:
        enrolled = self._customer.is_on_autopay
        message = (
            "You are enrolled in AutoPay. Your bill will be automatically paid on the due date."
            if enrolled
            else "You are not currently enrolled in AutoPay. "
            "Would you like information on how to enroll?"
        )
        return {"is_enrolled": enrolled, "message": message}

    def get_bill_details(self) -> dict[str, Any]:
        bill = self._customer.latest_bill
        if bill is None:
            return {"message": "No billing history available."}
        read = "actual meter read" if bill.read_type == "A" else "estimated meter read"
        return {
            "billing_period": bill.period,
            "kwh_usage": bill.kwh_usage,
            "amount_due": bill.amount_due,
            "bill_date": bill.bill_date.isoformat(),
            "read_type": bill.read_type,
            "message": (
                f"Your most recent bill for {bill.period} was {_money(bill.amount_due)} "
                f"for {bill.kwh_usage} kWh, issued {_long_date(bill.bill_date)} "
                f"based on an {read}."
            ),
        }

    def get_meter_read_type(self) -> dict[str, Any]:
        bill = self._customer.latest_bill
        if bill is None:
            return {"read_type": "N/A", "message": "No billing history available."}
        if bill.read_type == "A":
            message = "Your last bill was based on an actual meter read."
        elif bill.read_type == "E":
            message = (
                "Your last bill was based on an estimated meter read. This can happen "
                "when the meter couldn't be accessed."
            )
        else:
            message = "Unknown read type."
        return {"read_type": bill.read_type, "billing_period": bill.period, "message": message}

    def get_billing_history(self) -> dict[str, Any]:
        bills = sorted(self._customer.billing_history, key=lambda b: b.bill_date, reverse=True)
        if not bills:
            return {"bills": [], "total_bills": 0, "message": "No billing history available."}
        lines = [
            f"- {b.period}: {_money(b.amount_due)} ({b.kwh_usage} kWh)" for b in bills
        ]
        return {
            "bills": [
                {
                    "billing_period": b.period,
                    "amount_due": b.amount_due,
                    "kwh_usage": b.kwh_usage,
                    "bill_date": b.bill_date.isoformat(),
                }
                for b in bills
            ],
            "total_bills": len(bills),
            "message": "Here are your recent bills:\n" + "\n".join(lines),
        }

    def make_payment(self, amount: float, billing_period: str | None = None) -> dict[str, Any]:
        """Registra o pagamento. Só deve ser chamada após aprovação."""
        c = self._customer
        amount = round(float(amount), 2)
        if amount <= 0:
            return {"success": False, "message": "The payment amount must be greater than zero."}

        period = billing_period or (c.latest_bill.period if c.latest_bill else "current bill")
        c.account_balance = round(max(c.account_balance - amount, 0.0), 2)
        c.last_payment_amount = amount
        c.last_payment_date = self._today
        confirmation = f"PAY-{uuid.uuid4().hex[:8].upper()}"
        return {
            "success": True,
            "amount": amount,
            "billing_period": period,
            "confirmation_number": confirmation,
            "message": (
                f"Your payment of {_money(amount)} for {period} has been submitted. "
                f"Confirmation number: {confirmation}."
            ),
        }
