from __future__ import annotations

import logging
import os
from dataclasses import dataclass

logger = logging.getLogger(__name__)

_DEV_SIGNING_SECRET = "dev-only-order-signing-secret"


@dataclass(frozen=True, slots=True)
class CheckoutSettings:
    """Checkout policy knobs.

    Env vars:
    - STOREFRONT_ORDER_SIGNING_SECRET (default: a dev-only secret; set it in production)
    - STOREFRONT_FRAUD_SCORE_THRESHOLD (default: 75; scores above it are flagged)
    - STOREFRONT_AMOUNT_TOLERANCE_CENTS (default: 5)
    - STOREFRONT_REJECT_AMOUNT_MISMATCH (default: false; log-only when false)
    - STOREFRONT_CHECKOUT_RATE_LIMIT (default: 5 attempts per window)
    - STOREFRONT_CHECKOUT_RATE_WINDOW_SECONDS (default: 60)
    - STOREFRONT_RATE_LIMIT_SWEEP_SECONDS (default: 300)
    """

    signing_secret: str
    fraud_score_threshold: int = 75
    amount_tolerance_cents: int = 5
    reject_amount_mismatch: bool = False
    checkout_rate_limit: int = 5
    checkout_rate_window_seconds: float = 60.0
    rate_limit_sweep_seconds: float = 300.0

    @classmethod
    def from_env(cls) -> "CheckoutSettings":
        secret = os.getenv("STOREFRONT_ORDER_SIGNING_SECRET", "").strip()
        if not secret:
            # Local-only default. Production must provide a real secret.
            logger.warning("STOREFRONT_ORDER_SIGNING_SECRET is not set; using the dev secret")
            secret = _DEV_SIGNING_SECRET

        return cls(
            signing_secret=secret,
            fraud_score_threshold=int(os.getenv("STOREFRONT_FRAUD_SCORE_THRESHOLD", "75")),
            amount_tolerance_cents=int(os.getenv("STOREFRONT_AMOUNT_TOLERANCE_CENTS", "5")),
            reject_amount_mismatch=parse_bool(
                os.getenv("STOREFRONT_REJECT_AMOUNT_MISMATCH", "false")
            ),
            checkout_rate_limit=int(os.getenv("STOREFRONT_CHECKOUT_RATE_LIMIT", "5")),
            checkout_rate_window_seconds=float(
                os.getenv("STOREFRONT_CHECKOUT_RATE_WINDOW_SECONDS", "60")
            ),
            rate_limit_sweep_seconds=float(os.getenv("STOREFRONT_RATE_LIMIT_SWEEP_SECONDS", "300")),
        )


def parse_bool(raw: str) -> bool:
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}
