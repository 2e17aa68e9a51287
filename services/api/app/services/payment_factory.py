from __future__ import annotations

import os

from services.api.app.services.payment_base import PaymentGateway
from services.api.app.services.payment_mock import shared_mock_gateway


def get_payment_gateway() -> PaymentGateway:
    """Select a gateway based on env vars.

    Defaults to the in-memory mock so tests and local dev never move real money unless
    explicitly configured otherwise.
    """

    mode = os.getenv("STOREFRONT_PAYMENT_GATEWAY", "mock").strip().lower()

    if mode == "mock":
        return shared_mock_gateway()

    if mode == "stripe":
        from services.api.app.services.payment_stripe import StripePaymentGateway

        return StripePaymentGateway.from_env()

    raise ValueError(f"Unknown STOREFRONT_PAYMENT_GATEWAY={mode!r}. Expected mock or stripe.")
