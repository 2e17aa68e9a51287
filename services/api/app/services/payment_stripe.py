from __future__ import annotations

import os
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any

from services.api.app.services.payment_base import (
    ChargeResult,
    GatewayConfigMissingError,
    IntentResult,
    PaymentDeclinedError,
    PaymentGatewayError,
    StripeSdkMissingError,
    TransactionNotFoundError,
)


@dataclass(frozen=True, slots=True)
class _StripeConfig:
    secret_key: str
    currency: str
    timeout_seconds: float


class StripePaymentGateway:
    """Payment gateway backed by Stripe PaymentIntents.

    Spend boundary:
    - create_or_confirm_charge: confirms off-session immediately (manual checkout)
    - create_intent: only creates/updates an unconfirmed intent (express checkout)

    Env vars:
    - STOREFRONT_PAYMENT_GATEWAY=stripe
    - STRIPE_SECRET_KEY (required)
    - STOREFRONT_CURRENCY (default: usd)
    - STOREFRONT_GATEWAY_TIMEOUT_SECONDS (default: 20)
    """

    name = "STRIPE"

    def __init__(self, cfg: _StripeConfig) -> None:
        self._cfg = cfg
        stripe = _stripe()
        stripe.api_key = cfg.secret_key
        # Never let the SDK retry a confirming call on its own.
        stripe.max_network_retries = 0
        stripe.default_http_client = stripe.new_default_http_client(timeout=cfg.timeout_seconds)

    @classmethod
    def from_env(cls) -> "StripePaymentGateway":
        secret_key = os.getenv("STRIPE_SECRET_KEY", "").strip()
        if not secret_key:
            raise GatewayConfigMissingError("STRIPE_SECRET_KEY")

        return cls(
            _StripeConfig(
                secret_key=secret_key,
                currency=os.getenv("STOREFRONT_CURRENCY", "usd").strip().lower(),
                timeout_seconds=float(os.getenv("STOREFRONT_GATEWAY_TIMEOUT_SECONDS", "20")),
            )
        )

    def find_or_create_customer(self, email: str) -> str:
        stripe = _stripe()
        with _translate_errors():
            existing = stripe.Customer.list(email=email, limit=1)
            if existing.data:
                return existing.data[0].id
            return stripe.Customer.create(email=email).id

    def attach_payment_method(self, customer_ref: str, payment_method_ref: str) -> None:
        stripe = _stripe()
        with _translate_errors():
            stripe.PaymentMethod.attach(payment_method_ref, customer=customer_ref)

    def create_or_confirm_charge(
        self,
        *,
        amount_minor_units: int,
        customer_ref: str | None,
        payment_method_ref: str,
        idempotency_key: str,
    ) -> ChargeResult:
        stripe = _stripe()
        params: dict[str, Any] = {
            "amount": amount_minor_units,
            "currency": self._cfg.currency,
            "payment_method": payment_method_ref,
            "confirm": True,
            "off_session": True,
            "expand": ["latest_charge"],
        }
        if customer_ref:
            params["customer"] = customer_ref

        with _translate_errors():
            intent = stripe.PaymentIntent.create(idempotency_key=idempotency_key, **params)
        return _charge_result(intent)

    def retrieve_charge(self, transaction_ref: str) -> ChargeResult:
        stripe = _stripe()
        try:
            intent = stripe.PaymentIntent.retrieve(transaction_ref, expand=["latest_charge"])
        except stripe.InvalidRequestError as e:
            if getattr(e, "code", None) == "resource_missing":
                raise TransactionNotFoundError(transaction_ref) from e
            raise PaymentGatewayError(_user_message(e)) from e
        except stripe.StripeError as e:
            raise PaymentGatewayError(_user_message(e)) from e
        return _charge_result(intent)

    def create_intent(
        self,
        *,
        amount_minor_units: int,
        customer_ref: str | None,
        transaction_ref: str | None = None,
    ) -> IntentResult:
        stripe = _stripe()
        with _translate_errors():
            if transaction_ref:
                intent = stripe.PaymentIntent.modify(transaction_ref, amount=amount_minor_units)
            else:
                params: dict[str, Any] = {
                    "amount": amount_minor_units,
                    "currency": self._cfg.currency,
                    "automatic_payment_methods": {"enabled": True},
                }
                if customer_ref:
                    params["customer"] = customer_ref
                intent = stripe.PaymentIntent.create(**params)

        return IntentResult(
            transaction_ref=intent.id,
            client_secret=intent.client_secret,
            amount_minor_units=intent.amount,
            status=intent.status,
        )


@contextmanager
def _translate_errors() -> Iterator[None]:
    """Re-raise Stripe SDK errors as gateway errors carrying Stripe's message."""

    stripe = _stripe()
    try:
        yield
    except stripe.CardError as e:
        raise PaymentDeclinedError(_user_message(e), getattr(e, "code", None)) from e
    except stripe.StripeError as e:
        raise PaymentGatewayError(_user_message(e)) from e


def _charge_result(intent: Any) -> ChargeResult:
    charge = intent.get("latest_charge")
    charge_id: str | None = None
    risk_score: int | None = None

    if isinstance(charge, str):
        charge_id = charge
    elif charge is not None:
        charge_id = charge.get("id")
        outcome = charge.get("outcome") or {}
        raw_score = outcome.get("risk_score")
        risk_score = int(raw_score) if raw_score is not None else None

    return ChargeResult(
        status=intent.status,
        charge_id=charge_id,
        transaction_ref=intent.id,
        amount_minor_units=int(intent.get("amount_received") or intent.amount),
        risk_score=risk_score,
    )


def _user_message(e: Any) -> str:
    return getattr(e, "user_message", None) or str(e) or type(e).__name__


def _stripe() -> Any:
    try:
        import stripe
    except ImportError as e:  # pragma: no cover
        raise StripeSdkMissingError() from e

    return stripe
