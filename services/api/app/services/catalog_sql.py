from __future__ import annotations

from datetime import datetime, timezone

from services.api.app.db import models
from services.api.app.services.catalog_base import (
    CatalogProduct,
    Promo,
    ShippingConfig,
    ShippingRates,
    normalize_promo_code,
)
from sqlalchemy import func
from sqlalchemy.orm import Session


class SqlCatalogReader:
    """CatalogReader backed by the request's SQLAlchemy session."""

    def __init__(self, db: Session) -> None:
        self._db = db

    def get_product(self, product_id: str) -> CatalogProduct | None:
        row = self._db.get(models.Product, product_id)
        if row is None:
            return None
        return CatalogProduct(
            id=row.id,
            name=row.name,
            price_cents=row.price_cents,
            shipping_template_id=row.shipping_template_id,
            is_active=row.is_active,
        )

    def get_shipping_template(self, template_id: str) -> ShippingRates | None:
        row = self._db.get(models.ShippingTemplate, template_id)
        if row is None:
            return None
        return ShippingRates(
            id=row.id,
            base_rate_cents=row.base_rate_cents,
            additional_item_rate_cents=row.additional_item_rate_cents,
        )

    def get_promo(self, code: str) -> Promo | None:
        normalized = normalize_promo_code(code)
        if normalized is None:
            return None

        row = self._db.get(models.PromoCode, normalized)
        if row is None:
            # Rows written outside the ORM may not be upper-cased.
            row = (
                self._db.query(models.PromoCode)
                .filter(func.upper(models.PromoCode.code) == normalized)
                .first()
            )
        if row is None:
            return None

        return Promo(
            code=row.code,
            discount_type="fixed" if row.discount_type == "fixed" else "percentage",
            value=row.value,
            is_active=row.is_active,
            expires_at=_as_utc(row.expires_at),
            usage_count=row.usage_count,
            max_uses=row.max_uses,
            min_order_value_cents=row.min_order_value_cents,
        )

    def get_shipping_config(self) -> ShippingConfig:
        row = self._db.get(models.StoreShippingConfig, models.StoreShippingConfig.SINGLETON_ID)
        if row is None:
            return ShippingConfig(enabled=False)
        return ShippingConfig(
            enabled=row.enabled,
            base_rate_cents=row.base_rate_cents,
            additional_item_rate_cents=row.additional_item_rate_cents,
            free_shipping_threshold_cents=row.free_shipping_threshold_cents,
            handling_fee_cents=row.handling_fee_cents,
        )


def _as_utc(value: datetime | None) -> datetime | None:
    # SQLite hands back naive datetimes even for timezone-aware columns.
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)
