from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Literal, Protocol

DiscountType = Literal["percentage", "fixed"]


@dataclass(frozen=True, slots=True)
class CatalogProduct:
    id: str
    name: str
    price_cents: int
    shipping_template_id: str | None = None
    is_active: bool = True


@dataclass(frozen=True, slots=True)
class ShippingRates:
    """A shipping template, or the store-wide fallback rates."""

    id: str
    base_rate_cents: int
    additional_item_rate_cents: int


@dataclass(frozen=True, slots=True)
class ShippingConfig:
    enabled: bool
    base_rate_cents: int = 0
    additional_item_rate_cents: int = 0
    free_shipping_threshold_cents: int = 0
    handling_fee_cents: int = 0

    def default_rates(self) -> ShippingRates:
        return ShippingRates(
            id="store-default",
            base_rate_cents=self.base_rate_cents,
            additional_item_rate_cents=self.additional_item_rate_cents,
        )


@dataclass(frozen=True, slots=True)
class Promo:
    code: str
    discount_type: DiscountType
    value: float
    is_active: bool = True
    expires_at: datetime | None = None
    usage_count: int = 0
    max_uses: int | None = None
    min_order_value_cents: int | None = None


class CatalogReader(Protocol):
    """Read-only lookups used while pricing a cart."""

    def get_product(self, product_id: str) -> CatalogProduct | None: ...

    def get_shipping_template(self, template_id: str) -> ShippingRates | None: ...

    def get_promo(self, code: str) -> Promo | None: ...

    def get_shipping_config(self) -> ShippingConfig: ...


def normalize_promo_code(code: str | None) -> str | None:
    if code is None:
        return None
    cleaned = code.strip().upper()
    return cleaned or None
