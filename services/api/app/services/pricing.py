"""Pricing calculator.

`quote` is the only source of truth for what a cart costs. It reads prices, shipping
templates and promo codes through a `CatalogReader` and never looks at client-asserted
prices or totals.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal

from services.api.app.models.checkout import CartLineItemIn
from services.api.app.services.catalog_base import CatalogReader, Promo, normalize_promo_code
from services.api.app.services.shipping import shipping_cost_cents

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class VerifiedLineItem:
    product_id: str
    name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int
    shipping_template_id: str | None = None


@dataclass(frozen=True, slots=True)
class PriceQuote:
    subtotal_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int
    items: tuple[VerifiedLineItem, ...]
    promo_code: str | None = None
    dropped_product_ids: tuple[str, ...] = ()


def quote(
    items: Sequence[CartLineItemIn],
    promo_code: str | None,
    catalog: CatalogReader,
    *,
    now: datetime | None = None,
) -> PriceQuote:
    verified: list[VerifiedLineItem] = []
    dropped: list[str] = []
    subtotal = 0

    for item in items:
        product = catalog.get_product(item.product_id)
        if product is None or not product.is_active:
            dropped.append(item.product_id)
            continue

        if item.price_cents is not None and item.price_cents != product.price_cents:
            logger.info(
                "Ignoring client price for %s: client=%s catalog=%s",
                item.product_id,
                item.price_cents,
                product.price_cents,
            )

        line_total = product.price_cents * item.quantity
        subtotal += line_total
        verified.append(
            VerifiedLineItem(
                product_id=product.id,
                name=product.name,
                quantity=item.quantity,
                unit_price_cents=product.price_cents,
                line_total_cents=line_total,
                shipping_template_id=product.shipping_template_id,
            )
        )

    if dropped:
        logger.warning("Dropped unknown or inactive products from quote: %s", dropped)

    applied_code, discount = _resolve_discount(catalog, promo_code, subtotal, now)

    config = catalog.get_shipping_config()
    threshold = config.free_shipping_threshold_cents
    if not config.enabled or (threshold > 0 and subtotal >= threshold):
        shipping = 0
    else:
        shipping = shipping_cost_cents(verified, catalog, config)

    total = max(0, subtotal + shipping - discount)

    return PriceQuote(
        subtotal_cents=subtotal,
        shipping_cents=shipping,
        discount_cents=discount,
        total_cents=total,
        items=tuple(verified),
        promo_code=applied_code,
        dropped_product_ids=tuple(dropped),
    )


def promo_rejection_reason(
    promo: Promo | None, subtotal_cents: int, now: datetime
) -> str | None:
    if promo is None:
        return "unknown"
    if not promo.is_active:
        return "inactive"
    if promo.expires_at is not None and promo.expires_at <= now:
        return "expired"
    if promo.max_uses is not None and promo.usage_count >= promo.max_uses:
        return "exhausted"
    if promo.min_order_value_cents is not None and subtotal_cents < promo.min_order_value_cents:
        return "below minimum order value"
    return None


def _resolve_discount(
    catalog: CatalogReader,
    promo_code: str | None,
    subtotal_cents: int,
    now: datetime | None,
) -> tuple[str | None, int]:
    code = normalize_promo_code(promo_code)
    if code is None:
        return None, 0

    promo = catalog.get_promo(code)
    reason = promo_rejection_reason(promo, subtotal_cents, now or datetime.now(timezone.utc))
    if reason is not None:
        # Bad codes never block checkout; they just don't discount.
        logger.info("Promo %s not applied: %s", code, reason)
        return None, 0

    assert promo is not None
    if promo.discount_type == "fixed":
        return promo.code, _to_cents(Decimal(str(promo.value)))

    percent_off = Decimal(subtotal_cents) * Decimal(str(promo.value)) / Decimal(100)
    return promo.code, _to_cents(percent_off)


def _to_cents(amount: Decimal) -> int:
    return max(0, int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP)))
