from __future__ import annotations

import threading
from dataclasses import dataclass
from uuid import uuid4

from services.api.app.services.payment_base import (
    ChargeResult,
    IntentResult,
    PaymentDeclinedError,
    TransactionNotFoundError,
)

# Payment method refs that mimic Stripe's test cards.
DECLINED_METHOD = "pm_card_chargeDeclined"
RISK_SCORES = {
    "pm_card_riskLevelHighest": 95,
    "pm_card_riskLevelElevated": 70,
}
DEFAULT_RISK_SCORE = 12


@dataclass(slots=True)
class _Transaction:
    ref: str
    client_secret: str
    amount_minor_units: int
    customer_ref: str | None
    status: str
    charge_id: str | None = None
    risk_score: int | None = None


class MockPaymentGateway:
    """Deterministic in-memory gateway for tests and local dev.

    Shared across requests so an intent created by one call can be confirmed and then
    retrieved by another.
    """

    name = "MOCK"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._customers: dict[str, str] = {}
        self._attached: dict[str, set[str]] = {}
        self._transactions: dict[str, _Transaction] = {}
        self._idempotent: dict[str, ChargeResult] = {}
        self.charge_calls = 0

    def find_or_create_customer(self, email: str) -> str:
        with self._lock:
            if email not in self._customers:
                self._customers[email] = f"cus_{uuid4().hex[:14]}"
            return self._customers[email]

    def attach_payment_method(self, customer_ref: str, payment_method_ref: str) -> None:
        with self._lock:
            self._attached.setdefault(customer_ref, set()).add(payment_method_ref)

    def attached_methods(self, customer_ref: str) -> set[str]:
        with self._lock:
            return set(self._attached.get(customer_ref, set()))

    def create_or_confirm_charge(
        self,
        *,
        amount_minor_units: int,
        customer_ref: str | None,
        payment_method_ref: str,
        idempotency_key: str,
    ) -> ChargeResult:
        with self._lock:
            cached = self._idempotent.get(idempotency_key)
            if cached is not None:
                return cached

            self.charge_calls += 1
            if payment_method_ref == DECLINED_METHOD:
                raise PaymentDeclinedError(
                    "Your card was declined.", decline_code="generic_decline"
                )

            tx = _Transaction(
                ref=f"pi_{uuid4().hex[:20]}",
                client_secret=f"pi_secret_{uuid4().hex}",
                amount_minor_units=amount_minor_units,
                customer_ref=customer_ref,
                status="requires_confirmation",
            )
            self._confirm(tx, payment_method_ref)
            self._transactions[tx.ref] = tx

            result = _to_result(tx)
            self._idempotent[idempotency_key] = result
            return result

    def retrieve_charge(self, transaction_ref: str) -> ChargeResult:
        with self._lock:
            tx = self._transactions.get(transaction_ref)
            if tx is None:
                raise TransactionNotFoundError(transaction_ref)
            return _to_result(tx)

    def create_intent(
        self,
        *,
        amount_minor_units: int,
        customer_ref: str | None,
        transaction_ref: str | None = None,
    ) -> IntentResult:
        with self._lock:
            if transaction_ref is not None:
                tx = self._transactions.get(transaction_ref)
                if tx is None:
                    raise TransactionNotFoundError(transaction_ref)
                if tx.status == "requires_payment_method":
                    tx.amount_minor_units = amount_minor_units
            else:
                tx = _Transaction(
                    ref=f"pi_{uuid4().hex[:20]}",
                    client_secret=f"pi_secret_{uuid4().hex}",
                    amount_minor_units=amount_minor_units,
                    customer_ref=customer_ref,
                    status="requires_payment_method",
                )
                self._transactions[tx.ref] = tx

            return IntentResult(
                transaction_ref=tx.ref,
                client_secret=tx.client_secret,
                amount_minor_units=tx.amount_minor_units,
                status=tx.status,
            )

    def confirm_intent(self, transaction_ref: str, payment_method_ref: str) -> ChargeResult:
        """What the storefront's wallet button does client-side in the express flow."""

        with self._lock:
            tx = self._transactions.get(transaction_ref)
            if tx is None:
                raise TransactionNotFoundError(transaction_ref)
            if payment_method_ref == DECLINED_METHOD:
                tx.status = "requires_payment_method"
                raise PaymentDeclinedError(
                    "Your card was declined.", decline_code="generic_decline"
                )
            self._confirm(tx, payment_method_ref)
            return _to_result(tx)

    @staticmethod
    def _confirm(tx: _Transaction, payment_method_ref: str) -> None:
        tx.status = "succeeded"
        tx.charge_id = f"ch_{uuid4().hex[:20]}"
        tx.risk_score = RISK_SCORES.get(payment_method_ref, DEFAULT_RISK_SCORE)


def _to_result(tx: _Transaction) -> ChargeResult:
    return ChargeResult(
        status=tx.status,
        charge_id=tx.charge_id,
        transaction_ref=tx.ref,
        amount_minor_units=tx.amount_minor_units,
        risk_score=tx.risk_score,
    )


_SHARED = MockPaymentGateway()


def shared_mock_gateway() -> MockPaymentGateway:
    return _SHARED


def reset_shared_mock_gateway() -> MockPaymentGateway:
    global _SHARED
    _SHARED = MockPaymentGateway()
    return _SHARED
