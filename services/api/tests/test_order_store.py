from __future__ import annotations

from pathlib import Path

import pytest
from packages.shared.schemas.order_record_v1 import CheckoutModeV1, OrderStatusV1
from services.api.app.db.models import Order, PromoCode
from services.api.app.services.checkout import (
    CheckoutResult,
    OrderConflictError,
    TransactionAlreadyUsedError,
)
from services.api.app.services.integrity import OrderSigner
from services.api.app.services.order_store import OrderStore, build_order_record, to_record
from services.api.app.services.pricing import PriceQuote, VerifiedLineItem


@pytest.fixture()
def db(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    monkeypatch.setenv("DATABASE_URL", f"sqlite+pysqlite:///{tmp_path / 'orders.db'}")
    monkeypatch.setenv("STOREFRONT_DB_AUTO_CREATE", "true")

    from services.api.app.db.database import db_session
    from services.api.app.db.init_db import init_db

    init_db()
    session = db_session()
    try:
        yield session
    finally:
        session.close()


def _quote(qty: int = 2, promo_code: str | None = None, discount: int = 0) -> PriceQuote:
    line_total = 1200 * qty
    return PriceQuote(
        subtotal_cents=line_total,
        shipping_cents=550,
        discount_cents=discount,
        total_cents=line_total + 550 - discount,
        items=(
            VerifiedLineItem(
                product_id="mug-1",
                name="Mug",
                quantity=qty,
                unit_price_cents=1200,
                line_total_cents=line_total,
            ),
        ),
        promo_code=promo_code,
    )


def _record(
    order_id: str = "ORD-1",
    *,
    email: str = "a@example.com",
    fraud: bool = False,
    transaction_ref: str = "pi_1",
    **quote_kwargs,
):
    priced = _quote(**quote_kwargs)
    result = CheckoutResult(
        success=True,
        payment_reference="ch_1",
        transaction_ref=transaction_ref,
        is_fraud_suspect=fraud,
        fraud_score=95 if fraud else 10,
        verified_total_cents=priced.total_cents,
        quote=priced,
    )
    return build_order_record(
        order_id=order_id,
        user_id=None,
        customer_email=email,
        mode=CheckoutModeV1.MANUAL,
        result=result,
    )


def test_upsert_creates_signed_order(db) -> None:
    store = OrderStore(OrderSigner("secret"))
    row, created = store.upsert(db, _record())
    db.commit()

    assert created
    assert row.status == OrderStatusV1.PROCESSING.value
    assert row.total_cents == 2950
    assert store.verify(row)


def test_fraud_suspect_order_is_put_on_hold(db) -> None:
    store = OrderStore(OrderSigner("secret"))
    row, _ = store.upsert(db, _record(fraud=True))
    db.commit()

    assert row.status == OrderStatusV1.ON_HOLD.value
    assert row.is_fraud_suspect


def test_resubmitting_same_order_updates_contact_only(db) -> None:
    store = OrderStore(OrderSigner("secret"))
    first, _ = store.upsert(db, _record())
    db.commit()
    signature = first.integrity_signature

    row, created = store.upsert(db, _record(email="new@example.com"))
    db.commit()

    assert not created
    assert row.customer_email == "new@example.com"
    assert row.integrity_signature == signature
    assert db.query(Order).count() == 1


def test_resubmitting_different_financials_conflicts(db) -> None:
    store = OrderStore(OrderSigner("secret"))
    store.upsert(db, _record())
    db.commit()

    with pytest.raises(OrderConflictError):
        store.upsert(db, _record(qty=3))

    with pytest.raises(OrderConflictError):
        store.ensure_matches(store.get(db, "ORD-1"), _quote(qty=3))

    # Same items at a different price still replay.
    store.ensure_matches(store.get(db, "ORD-1"), _quote(discount=100))


def test_promo_usage_counts_once_per_order(db) -> None:
    db.add(PromoCode(code="SAVE10", discount_type="percentage", value=10.0))
    db.commit()

    store = OrderStore(OrderSigner("secret"))
    store.upsert(db, _record(promo_code="SAVE10", discount=240))
    db.commit()
    store.upsert(db, _record(promo_code="SAVE10", discount=240))
    db.commit()

    db.expire_all()
    assert db.get(PromoCode, "SAVE10").usage_count == 1


def test_tampered_row_fails_verification(db) -> None:
    store = OrderStore(OrderSigner("secret"))
    row, _ = store.upsert(db, _record())
    db.commit()

    row.total_cents = 1
    db.commit()

    assert not store.verify(row)
    assert to_record(row).total_cents == 1


def test_transaction_cannot_pay_for_two_orders(db) -> None:
    store = OrderStore(OrderSigner("secret"))
    store.upsert(db, _record("ORD-1", transaction_ref="pi_shared"))
    db.commit()

    store.ensure_transaction_unused(db, "pi_shared", "ORD-1")
    store.ensure_transaction_unused(db, "pi_other", "ORD-2")
    with pytest.raises(TransactionAlreadyUsedError):
        store.ensure_transaction_unused(db, "pi_shared", "ORD-2")


def test_second_order_with_same_transaction_is_rejected_on_insert(db) -> None:
    store = OrderStore(OrderSigner("secret"))
    store.upsert(db, _record("ORD-1", transaction_ref="pi_shared"))
    db.commit()

    # Skips ensure_transaction_unused; the unique column rejects the insert.
    with pytest.raises(TransactionAlreadyUsedError) as excinfo:
        store.upsert(db, _record("ORD-2", transaction_ref="pi_shared"))

    assert excinfo.value.order_id == "ORD-1"
    assert db.query(Order).filter(Order.transaction_ref == "pi_shared").count() == 1
