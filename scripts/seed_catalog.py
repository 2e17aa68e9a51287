from __future__ import annotations

import argparse
from datetime import datetime, timedelta, timezone

from services.api.app.db.database import db_session
from services.api.app.db.init_db import init_db
from services.api.app.db.models import (
    Product,
    PromoCode,
    ShippingTemplate,
    StoreShippingConfig,
)


def main() -> int:
    parser = argparse.ArgumentParser(description="Seed a small storefront catalog for local checkout")
    parser.add_argument("--enable-shipping", action=argparse.BooleanOptionalAction, default=True)
    parser.add_argument("--free-shipping-threshold-cents", type=int, default=5000)
    parser.add_argument("--handling-fee-cents", type=int, default=0)
    args = parser.parse_args()

    init_db()

    db = db_session()
    try:
        if db.get(ShippingTemplate, "tpl-small") is None:
            db.add(
                ShippingTemplate(
                    id="tpl-small",
                    name="Small parcel",
                    base_rate_cents=300,
                    additional_item_rate_cents=110,
                )
            )

        for pid, name, price, template_id in (
            ("mug-1", "Stoneware Mug", 1200, "tpl-small"),
            ("tee-1", "Logo Tee", 2200, None),
            ("poster-1", "Art Print", 1800, "tpl-small"),
        ):
            if db.get(Product, pid) is None:
                db.add(
                    Product(
                        id=pid,
                        name=name,
                        price_cents=price,
                        shipping_template_id=template_id,
                    )
                )

        config = db.get(StoreShippingConfig, StoreShippingConfig.SINGLETON_ID)
        if config is None:
            config = StoreShippingConfig(id=StoreShippingConfig.SINGLETON_ID)
            db.add(config)
        config.enabled = args.enable_shipping
        config.base_rate_cents = 500
        config.additional_item_rate_cents = 200
        config.free_shipping_threshold_cents = args.free_shipping_threshold_cents
        config.handling_fee_cents = args.handling_fee_cents

        # Promo codes
        now = datetime.now(timezone.utc)
        for code, kind, value, expires_at, max_uses, min_order in (
            ("SAVE10", "percentage", 10.0, None, None, None),
            ("FIVEOFF", "fixed", 500.0, now + timedelta(days=30), 100, 2000),
            ("OLDCODE", "percentage", 25.0, now - timedelta(days=1), None, None),
        ):
            if db.get(PromoCode, code) is None:
                db.add(
                    PromoCode(
                        code=code,
                        discount_type=kind,
                        value=value,
                        expires_at=expires_at,
                        max_uses=max_uses,
                        min_order_value_cents=min_order,
                    )
                )

        db.commit()
        print("Seeded storefront catalog")
        return 0
    finally:
        db.close()


if __name__ == "__main__":
    raise SystemExit(main())
