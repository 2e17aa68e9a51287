from __future__ import annotations

import logging
from datetime import datetime
from uuid import uuid4

from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from packages.shared.schemas.order_record_v1 import (
    CheckoutModeV1,
    OrderItemV1,
    OrderRecordV1,
    OrderStatusV1,
)
from services.api.app.db.models import EventLog, Order, PromoCode, utcnow
from services.api.app.services.checkout import (
    CheckoutResult,
    OrderConflictError,
    TransactionAlreadyUsedError,
)
from services.api.app.services.integrity import OrderSigner
from services.api.app.services.pricing import PriceQuote
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)


def new_order_id() -> str:
    return f"ORD-{uuid4().hex[:12].upper()}"


def build_order_record(
    *,
    order_id: str,
    user_id: str | None,
    customer_email: str,
    mode: CheckoutModeV1,
    result: CheckoutResult,
) -> OrderRecordV1:
    """Assemble the record to persist. Money comes only from the verified quote."""

    priced = result.quote
    return OrderRecordV1(
        id=order_id,
        user_id=user_id,
        customer_email=customer_email,
        items=_record_items(priced),
        subtotal_cents=priced.subtotal_cents,
        shipping_cents=priced.shipping_cents,
        discount_cents=priced.discount_cents,
        total_cents=priced.total_cents,
        promo_code=priced.promo_code,
        status=OrderStatusV1.ON_HOLD if result.is_fraud_suspect else OrderStatusV1.PROCESSING,
        checkout_mode=mode,
        payment_reference=result.payment_reference,
        transaction_ref=result.transaction_ref,
        is_fraud_suspect=result.is_fraud_suspect,
        fraud_score=result.fraud_score,
    )


def to_record(row: Order) -> OrderRecordV1:
    return OrderRecordV1(
        id=row.id,
        user_id=row.user_id,
        customer_email=row.customer_email,
        items=[OrderItemV1.model_validate(item) for item in row.items_json],
        subtotal_cents=row.subtotal_cents,
        shipping_cents=row.shipping_cents,
        discount_cents=row.discount_cents,
        total_cents=row.total_cents,
        promo_code=row.promo_code,
        status=OrderStatusV1(row.status),
        checkout_mode=CheckoutModeV1(row.checkout_mode),
        payment_reference=row.payment_reference,
        transaction_ref=row.transaction_ref,
        is_fraud_suspect=row.is_fraud_suspect,
        fraud_score=row.fraud_score,
        integrity_signature=row.integrity_signature,
        created_at=_iso(row.created_at),
        updated_at=_iso(row.updated_at),
    )


class OrderStore:
    """Idempotent order persistence keyed by order id.

    Financial fields (items, amounts, promo, signature) are written once. Re-submitting
    the same order only refreshes contact fields; re-submitting different financials is
    a conflict.
    """

    def __init__(self, signer: OrderSigner) -> None:
        self._signer = signer

    def get(self, db: Session, order_id: str) -> Order | None:
        return db.get(Order, order_id)

    def verify(self, row: Order) -> bool:
        return self._signer.verify(to_record(row), row.integrity_signature)

    def ensure_matches(self, row: Order, priced: PriceQuote) -> None:
        """A resubmitted order id must carry the same items and quantities.

        Amounts are not compared: the stored order keeps the prices and promo it was
        paid with, even if the catalog or promo usage changed since.
        """

        if _item_pairs_of_row(row) != _item_pairs_of_quote(priced):
            raise OrderConflictError(row.id)

    def ensure_transaction_unused(self, db: Session, transaction_ref: str, order_id: str) -> None:
        """One gateway transaction pays for at most one order."""

        owner = db.query(Order.id).filter(Order.transaction_ref == transaction_ref).first()
        if owner is not None and owner.id != order_id:
            raise TransactionAlreadyUsedError(transaction_ref, owner.id)

    def upsert(self, db: Session, record: OrderRecordV1) -> tuple[Order, bool]:
        """Insert or refresh an order. Returns (row, created). Caller commits."""

        existing = db.get(Order, record.id)
        if existing is None:
            row = self._insert(record)
            db.add(row)
            try:
                db.flush()
            except IntegrityError:
                # Lost a race with a concurrent submit of the same id or transaction.
                db.rollback()
                existing = db.get(Order, record.id)
                if existing is None:
                    if record.transaction_ref:
                        self.ensure_transaction_unused(db, record.transaction_ref, record.id)
                    raise
            else:
                self._count_promo_use(db, record.promo_code)
                return row, True

        if _financials_of_row(existing) != _financials_of_record(record):
            raise OrderConflictError(record.id)

        existing.customer_email = record.customer_email
        if record.user_id is not None:
            existing.user_id = record.user_id
        existing.updated_at = utcnow()
        return existing, False

    def _insert(self, record: OrderRecordV1) -> Order:
        signature = self._signer.sign(record)
        now = utcnow()
        return Order(
            id=record.id,
            user_id=record.user_id,
            customer_email=record.customer_email,
            items_json=[item.model_dump(mode="json") for item in record.items],
            subtotal_cents=record.subtotal_cents,
            shipping_cents=record.shipping_cents,
            discount_cents=record.discount_cents,
            total_cents=record.total_cents,
            promo_code=record.promo_code,
            integrity_signature=signature,
            status=record.status.value,
            checkout_mode=record.checkout_mode.value,
            payment_reference=record.payment_reference,
            transaction_ref=record.transaction_ref,
            is_fraud_suspect=record.is_fraud_suspect,
            fraud_score=record.fraud_score,
            created_at=now,
            updated_at=now,
        )

    @staticmethod
    def _count_promo_use(db: Session, promo_code: str | None) -> None:
        if not promo_code:
            return
        db.execute(
            update(PromoCode)
            .where(PromoCode.code == promo_code)
            .values(usage_count=PromoCode.usage_count + 1)
        )


def log_event(
    db: Session,
    *,
    user_id: str | None,
    entity_type: EntityTypeV1,
    entity_id: str,
    event_type: EventTypeV1,
    event_payload: dict,
) -> None:
    db.add(
        EventLog(
            id=uuid4().hex,
            user_id=user_id,
            entity_type=entity_type.value,
            entity_id=entity_id,
            event_type=event_type.value,
            event_payload_json=event_payload,
        )
    )


def _record_items(priced: PriceQuote) -> list[OrderItemV1]:
    return [
        OrderItemV1(
            product_id=item.product_id,
            name=item.name,
            quantity=item.quantity,
            unit_price_cents=item.unit_price_cents,
            line_total_cents=item.line_total_cents,
        )
        for item in priced.items
    ]


def _item_pairs_of_row(row: Order) -> tuple:
    return tuple((item["product_id"], item["quantity"]) for item in row.items_json)


def _item_pairs_of_quote(priced: PriceQuote) -> tuple:
    return tuple((item.product_id, item.quantity) for item in priced.items)


def _financials_of_row(row: Order) -> tuple:
    pairs = _item_pairs_of_row(row)
    return (row.total_cents, row.subtotal_cents, row.shipping_cents, row.discount_cents, pairs)


def _financials_of_record(record: OrderRecordV1) -> tuple:
    pairs = tuple((item.product_id, item.quantity) for item in record.items)
    return (
        record.total_cents,
        record.subtotal_cents,
        record.shipping_cents,
        record.discount_cents,
        pairs,
    )


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None
