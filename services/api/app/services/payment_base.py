from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

# Statuses that mean the customer has been (or will be) charged.
SUCCESS_STATUSES = frozenset({"succeeded", "processing", "requires_capture"})


class PaymentGatewayError(Exception):
    """Base class for payment gateway errors. The message is the gateway's own."""


class GatewayConfigMissingError(PaymentGatewayError):
    def __init__(self, setting: str) -> None:
        super().__init__(f"Payment gateway is not configured: {setting} is missing")
        self.setting = setting


class PaymentDeclinedError(PaymentGatewayError):
    def __init__(self, message: str, decline_code: str | None = None) -> None:
        super().__init__(message)
        self.decline_code = decline_code


class StripeSdkMissingError(PaymentGatewayError):
    def __init__(self) -> None:
        super().__init__(
            "stripe is not installed. Install the optional extra:\n"
            "  pip install 'storefront-checkout[stripe]'"
        )


class TransactionNotFoundError(PaymentGatewayError):
    def __init__(self, transaction_ref: str) -> None:
        super().__init__(f"No such payment transaction: {transaction_ref}")
        self.transaction_ref = transaction_ref


@dataclass(frozen=True, slots=True)
class ChargeResult:
    status: str
    charge_id: str | None
    transaction_ref: str
    amount_minor_units: int
    risk_score: int | None = None

    @property
    def succeeded(self) -> bool:
        return self.status in SUCCESS_STATUSES


@dataclass(frozen=True, slots=True)
class IntentResult:
    transaction_ref: str
    client_secret: str
    amount_minor_units: int
    status: str


class PaymentGateway(Protocol):
    name: str

    def find_or_create_customer(self, email: str) -> str: ...

    def attach_payment_method(self, customer_ref: str, payment_method_ref: str) -> None: ...

    def create_or_confirm_charge(
        self,
        *,
        amount_minor_units: int,
        customer_ref: str | None,
        payment_method_ref: str,
        idempotency_key: str,
    ) -> ChargeResult: ...

    def retrieve_charge(self, transaction_ref: str) -> ChargeResult: ...

    def create_intent(
        self,
        *,
        amount_minor_units: int,
        customer_ref: str | None,
        transaction_ref: str | None = None,
    ) -> IntentResult: ...
