from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest
from services.api.app.models.checkout import CartLineItemIn
from services.api.app.services.catalog_base import (
    CatalogProduct,
    Promo,
    ShippingConfig,
    ShippingRates,
)
from services.api.app.services.catalog_memory import InMemoryCatalog
from services.api.app.services.pricing import promo_rejection_reason, quote

NOW = datetime(2025, 6, 1, 12, 0, tzinfo=timezone.utc)


def _catalog(
    *,
    threshold: int = 5000,
    enabled: bool = True,
    handling_fee: int = 0,
    promos: list[Promo] | None = None,
) -> InMemoryCatalog:
    return InMemoryCatalog(
        products=[
            CatalogProduct(id="mug-1", name="Mug", price_cents=1200, shipping_template_id="tpl"),
            CatalogProduct(id="tee-1", name="Tee", price_cents=1005),
            CatalogProduct(id="old-1", name="Retired", price_cents=900, is_active=False),
        ],
        templates=[ShippingRates(id="tpl", base_rate_cents=300, additional_item_rate_cents=110)],
        promos=promos or [],
        shipping=ShippingConfig(
            enabled=enabled,
            base_rate_cents=500,
            additional_item_rate_cents=0,
            free_shipping_threshold_cents=threshold,
            handling_fee_cents=handling_fee,
        ),
    )


def _mugs(qty: int = 2, price_cents: int | None = None) -> list[CartLineItemIn]:
    return [CartLineItemIn(product_id="mug-1", quantity=qty, price_cents=price_cents)]


def test_two_mugs_with_template_shipping() -> None:
    q = quote(_mugs(), None, _catalog(), now=NOW)

    assert q.subtotal_cents == 2400
    assert q.shipping_cents == 550
    assert q.discount_cents == 0
    assert q.total_cents == 2950
    assert [(i.product_id, i.quantity, i.line_total_cents) for i in q.items] == [("mug-1", 2, 2400)]


def test_client_price_is_ignored() -> None:
    q = quote(_mugs(price_cents=1), None, _catalog(), now=NOW)
    assert q.items[0].unit_price_cents == 1200
    assert q.total_cents == 2950


def test_free_shipping_at_threshold_boundary() -> None:
    assert quote(_mugs(), None, _catalog(threshold=2400), now=NOW).shipping_cents == 0
    assert quote(_mugs(), None, _catalog(threshold=2401), now=NOW).shipping_cents == 550


def test_zero_threshold_never_grants_free_shipping() -> None:
    assert quote(_mugs(), None, _catalog(threshold=0), now=NOW).shipping_cents == 550


def test_shipping_disabled_is_free() -> None:
    assert quote(_mugs(), None, _catalog(enabled=False), now=NOW).shipping_cents == 0


def test_handling_fee_is_added_once_per_cart() -> None:
    items = _mugs() + [CartLineItemIn(product_id="tee-1", quantity=1)]
    q = quote(items, None, _catalog(threshold=0, handling_fee=199), now=NOW)
    # mug template 550 + tee store default 500 + handling 199
    assert q.shipping_cents == 1249


def test_unknown_and_inactive_products_are_dropped() -> None:
    items = _mugs() + [
        CartLineItemIn(product_id="ghost-1", quantity=1),
        CartLineItemIn(product_id="old-1", quantity=3),
    ]
    q = quote(items, None, _catalog(), now=NOW)

    assert [i.product_id for i in q.items] == ["mug-1"]
    assert q.dropped_product_ids == ("ghost-1", "old-1")
    assert q.subtotal_cents == 2400


def test_percentage_promo_is_case_insensitive_and_rounds_half_up() -> None:
    save10 = Promo(code="SAVE10", discount_type="percentage", value=10)
    catalog = _catalog(enabled=False, promos=[save10])
    q = quote([CartLineItemIn(product_id="tee-1", quantity=1)], " save10 ", catalog, now=NOW)

    assert q.promo_code == "SAVE10"
    assert q.discount_cents == 101
    assert q.total_cents == 904


def test_fixed_discount_larger_than_order_floors_total_at_zero() -> None:
    catalog = _catalog(promos=[Promo(code="BIG", discount_type="fixed", value=5000)])
    q = quote(_mugs(), "BIG", catalog, now=NOW)

    assert q.discount_cents == 5000
    assert q.total_cents == 0


@pytest.mark.parametrize(
    ("promo", "reason"),
    [
        (None, "unknown"),
        (Promo(code="X", discount_type="fixed", value=100, is_active=False), "inactive"),
        (
            Promo(
                code="X", discount_type="fixed", value=100, expires_at=NOW - timedelta(seconds=1)
            ),
            "expired",
        ),
        (
            Promo(code="X", discount_type="fixed", value=100, usage_count=3, max_uses=3),
            "exhausted",
        ),
        (
            Promo(code="X", discount_type="fixed", value=100, min_order_value_cents=2401),
            "below minimum order value",
        ),
        (
            Promo(code="X", discount_type="fixed", value=100, expires_at=NOW + timedelta(days=1)),
            None,
        ),
    ],
)
def test_promo_rejection_reasons(promo: Promo | None, reason: str | None) -> None:
    assert promo_rejection_reason(promo, 2400, NOW) == reason


def test_rejected_promo_does_not_discount() -> None:
    expired = Promo(
        code="OLD",
        discount_type="percentage",
        value=50,
        expires_at=NOW - timedelta(days=1),
    )
    q = quote(_mugs(), "OLD", _catalog(promos=[expired]), now=NOW)

    assert q.promo_code is None
    assert q.discount_cents == 0
    assert q.total_cents == 2950


def test_empty_cart_quotes_zero() -> None:
    q = quote([], None, _catalog(), now=NOW)
    assert q.total_cents == 0
    assert q.items == ()
