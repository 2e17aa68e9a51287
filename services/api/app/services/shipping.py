"""Shipping rate engine.

Each line item is charged from its product's shipping template, or from the store-wide
rates when the product has no template (or the template was deleted). Additional-unit
rates are normalized to a small set of "nice" endings before use.
"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Protocol

from services.api.app.services.catalog_base import CatalogReader, ShippingConfig, ShippingRates

# Cent endings an additional-unit rate may keep as-is.
_NICE_ENDINGS = frozenset({25, 50, 75, 95})


class ShippableItem(Protocol):
    quantity: int
    shipping_template_id: str | None


def adjusted_additional_rate_cents(rate_cents: int) -> int:
    """Normalize an additional-unit rate to a displayable price ending.

    Endings of .25/.50/.75/.95 are kept. Anything else rounds to the nearest quarter
    dollar (halves round up); a result on a whole dollar is bumped by a quarter.
    1.10 -> 1.25, 2.00 -> 2.25, 1.95 -> 1.95.
    """

    if rate_cents % 100 in _NICE_ENDINGS:
        return rate_cents

    adjusted = ((2 * rate_cents + 25) // 50) * 25
    if adjusted % 100 == 0:
        adjusted += 25
    return adjusted


def item_shipping_cents(rates: ShippingRates, quantity: int) -> int:
    # A single unit only ever pays the base rate.
    additional = rates.additional_item_rate_cents if quantity > 1 else 0

    if additional == 0:
        return rates.base_rate_cents * quantity

    return rates.base_rate_cents + quantity * adjusted_additional_rate_cents(additional)


def resolve_rates(
    catalog: CatalogReader, config: ShippingConfig, template_id: str | None
) -> ShippingRates:
    if template_id:
        template = catalog.get_shipping_template(template_id)
        if template is not None:
            return template
    return config.default_rates()


def shipping_cost_cents(
    items: Iterable[ShippableItem],
    catalog: CatalogReader,
    config: ShippingConfig,
) -> int:
    """Raw shipping for a cart, including the handling fee.

    Free-shipping and the global on/off switch are applied by the pricing calculator.
    """

    total = 0
    for item in items:
        rates = resolve_rates(catalog, config, item.shipping_template_id)
        total += item_shipping_cents(rates, item.quantity)

    return total + config.handling_fee_cents
