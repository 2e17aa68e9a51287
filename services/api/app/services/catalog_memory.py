from __future__ import annotations

from collections.abc import Iterable

from services.api.app.services.catalog_base import (
    CatalogProduct,
    Promo,
    ShippingConfig,
    ShippingRates,
    normalize_promo_code,
)


class InMemoryCatalog:
    """CatalogReader over plain dicts. Used by unit tests and local tooling."""

    def __init__(
        self,
        *,
        products: Iterable[CatalogProduct] = (),
        templates: Iterable[ShippingRates] = (),
        promos: Iterable[Promo] = (),
        shipping: ShippingConfig | None = None,
    ) -> None:
        self._products = {p.id: p for p in products}
        self._templates = {t.id: t for t in templates}
        self._promos = {normalize_promo_code(p.code): p for p in promos}
        self._shipping = shipping or ShippingConfig(enabled=False)

    def get_product(self, product_id: str) -> CatalogProduct | None:
        return self._products.get(product_id)

    def get_shipping_template(self, template_id: str) -> ShippingRates | None:
        return self._templates.get(template_id)

    def get_promo(self, code: str) -> Promo | None:
        return self._promos.get(normalize_promo_code(code))

    def get_shipping_config(self) -> ShippingConfig:
        return self._shipping
