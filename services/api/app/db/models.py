from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, validates


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    pass


class Product(Base):
    __tablename__ = "products"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    price_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_template_id: Mapped[str | None] = mapped_column(String, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class ShippingTemplate(Base):
    __tablename__ = "shipping_templates"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    name: Mapped[str] = mapped_column(String, nullable=False)
    base_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    additional_item_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)


class StoreShippingConfig(Base):
    """Store-wide shipping settings. Always a single row."""

    __tablename__ = "store_shipping_config"

    SINGLETON_ID = "default"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    base_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    additional_item_rate_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # 0 disables the free-shipping threshold.
    free_shipping_threshold_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    handling_fee_cents: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class PromoCode(Base):
    __tablename__ = "promo_codes"

    code: Mapped[str] = mapped_column(String, primary_key=True)
    discount_type: Mapped[str] = mapped_column(String, nullable=False)
    # Percentage points for "percentage" codes, cents for "fixed" codes.
    value: Mapped[float] = mapped_column(Float, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    expires_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    usage_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_uses: Mapped[int | None] = mapped_column(Integer, nullable=True)
    min_order_value_cents: Mapped[int | None] = mapped_column(Integer, nullable=True)

    @validates("code")
    def _normalize_code(self, key: str, value: str) -> str:
        # Lookups are by upper-cased code.
        return value.strip().upper()


class Customer(Base):
    __tablename__ = "customers"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    email: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    is_suspended: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    customer_email: Mapped[str] = mapped_column(String, nullable=False)

    # Financial fields. Written once, at creation.
    items_json: Mapped[list] = mapped_column(JSON, nullable=False)
    subtotal_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    shipping_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    discount_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    total_cents: Mapped[int] = mapped_column(Integer, nullable=False)
    promo_code: Mapped[str | None] = mapped_column(String, nullable=True)
    integrity_signature: Mapped[str] = mapped_column(String, nullable=False)

    status: Mapped[str] = mapped_column(String, nullable=False)
    checkout_mode: Mapped[str] = mapped_column(String, nullable=False)
    payment_reference: Mapped[str] = mapped_column(String, nullable=False)
    # One gateway transaction pays for at most one order. NULLs do not collide.
    transaction_ref: Mapped[str | None] = mapped_column(String, nullable=True, unique=True)
    is_fraud_suspect: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    fraud_score: Mapped[int | None] = mapped_column(Integer, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class EventLog(Base):
    __tablename__ = "event_log"

    id: Mapped[str] = mapped_column(String, primary_key=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)

    entity_type: Mapped[str] = mapped_column(String, nullable=False)
    entity_id: Mapped[str] = mapped_column(String, nullable=False, index=True)
    event_type: Mapped[str] = mapped_column(String, nullable=False)
    event_payload_json: Mapped[dict] = mapped_column(JSON, nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
