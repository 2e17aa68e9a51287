from __future__ import annotations

from pathlib import Path

import pytest
from services.api.app.db.models import PromoCode
from services.api.app.services.catalog_sql import SqlCatalogReader
from sqlalchemy import insert


@pytest.fixture()
def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'catalog.db'}")
    monkeypatch.setenv("STOREFRONT_DB_AUTO_CREATE", "true")

    from services.api.app.db.database import db_session
    from services.api.app.db.init_db import init_db

    init_db()
    session = db_session()
    try:
        yield session
    finally:
        session.close()


def test_promo_codes_are_upper_cased_on_write(db) -> None:
    db.add(PromoCode(code=" save10 ", discount_type="percentage", value=10.0))
    db.commit()

    assert db.get(PromoCode, "SAVE10") is not None
    promo = SqlCatalogReader(db).get_promo("Save10")
    assert promo is not None
    assert promo.code == "SAVE10"


def test_lower_case_promo_row_still_matches(db) -> None:
    db.execute(
        insert(PromoCode).values(
            code="summer", discount_type="fixed", value=500.0, is_active=True, usage_count=0
        )
    )
    db.commit()

    promo = SqlCatalogReader(db).get_promo("SUMMER")
    assert promo is not None
    assert promo.code == "summer"
    assert promo.discount_type == "fixed"


def test_unknown_promo_and_missing_shipping_config(db) -> None:
    reader = SqlCatalogReader(db)
    assert reader.get_promo("NOPE") is None
    assert reader.get_promo("   ") is None
    assert reader.get_shipping_config().enabled is False
