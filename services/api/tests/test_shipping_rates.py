import pytest
from services.api.app.services.catalog_base import CatalogProduct, ShippingConfig, ShippingRates
from services.api.app.services.catalog_memory import InMemoryCatalog
from services.api.app.services.shipping import (
    adjusted_additional_rate_cents,
    item_shipping_cents,
    shipping_cost_cents,
)


@pytest.mark.parametrize(
    ("rate", "expected"),
    [
        (110, 125),
        (200, 225),
        (195, 195),
        (150, 150),
        (325, 325),
        (160, 150),
        (140, 150),
        (90, 125),
        (10, 25),
    ],
)
def test_additional_rate_is_normalized(rate: int, expected: int) -> None:
    assert adjusted_additional_rate_cents(rate) == expected


def test_single_unit_pays_base_rate_only() -> None:
    rates = ShippingRates(id="t", base_rate_cents=300, additional_item_rate_cents=110)
    assert item_shipping_cents(rates, 1) == 300


def test_multiple_units_pay_base_plus_adjusted_rate_per_unit() -> None:
    rates = ShippingRates(id="t", base_rate_cents=300, additional_item_rate_cents=110)
    assert item_shipping_cents(rates, 2) == 300 + 2 * 125


def test_no_additional_rate_charges_base_per_unit() -> None:
    rates = ShippingRates(id="t", base_rate_cents=400, additional_item_rate_cents=0)
    assert item_shipping_cents(rates, 3) == 1200


def test_cart_shipping_falls_back_to_store_rates_and_adds_handling_fee() -> None:
    config = ShippingConfig(
        enabled=True,
        base_rate_cents=500,
        additional_item_rate_cents=0,
        handling_fee_cents=150,
    )
    catalog = InMemoryCatalog(
        products=[CatalogProduct(id="p-1", name="Thing", price_cents=1000)],
        shipping=config,
    )

    class _Item:
        quantity = 1
        # Template was deleted; store defaults apply.
        shipping_template_id = "gone"

    assert shipping_cost_cents([_Item()], catalog, config) == 650
