"""Shared persisted order record (v1).

This is the JSON shape of an order as written to durable storage and returned to
admin clients. The integrity signature covers `id`, `total_cents` and the ordered
`(product_id, quantity)` pairs of `items`.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class OrderStatusV1(str, Enum):
    PROCESSING = "PROCESSING"
    ON_HOLD = "ON_HOLD"


class CheckoutModeV1(str, Enum):
    MANUAL = "manual"
    EXPRESS = "express"


class OrderItemV1(BaseModel):
    product_id: str
    name: str
    quantity: int = Field(..., ge=1)
    unit_price_cents: int
    line_total_cents: int


class OrderRecordV1(BaseModel):
    version: str = "1"
    id: str
    user_id: str | None = None
    customer_email: str

    items: list[OrderItemV1] = Field(..., min_length=1)

    subtotal_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int
    promo_code: str | None = None

    status: OrderStatusV1 = OrderStatusV1.PROCESSING
    checkout_mode: CheckoutModeV1

    # Gateway references. `payment_reference` is the charge id.
    payment_reference: str
    transaction_ref: str | None = None

    is_fraud_suspect: bool = False
    fraud_score: int | None = None

    integrity_signature: str | None = None
    created_at: str | None = None
    updated_at: str | None = None
