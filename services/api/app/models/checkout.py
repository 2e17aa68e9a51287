from __future__ import annotations

import re
from typing import Annotated, Literal

from pydantic import BaseModel, Field, field_validator

_EMAIL_RE = re.compile(r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$")
_EMAIL_STRIP_RE = re.compile(r"[\x00-\x1f\x7f<>,\"'`()]")


def sanitize_email(raw: str) -> str:
    return _EMAIL_STRIP_RE.sub("", re.sub(r"\s+", "", raw.lower())).strip()


class CartLineItemIn(BaseModel):
    product_id: str = Field(..., min_length=1)
    quantity: int = Field(..., ge=1, le=999)
    # Client-asserted unit price. Never used for pricing.
    price_cents: int | None = None


class ManualPaymentIn(BaseModel):
    mode: Literal["manual"] = "manual"
    payment_method_ref: str = Field(..., min_length=1)
    save_payment_method: bool = False


class ExpressPaymentIn(BaseModel):
    mode: Literal["express"] = "express"
    transaction_ref: str = Field(..., min_length=1)


PaymentIn = Annotated[ManualPaymentIn | ExpressPaymentIn, Field(discriminator="mode")]


class _CartRequest(BaseModel):
    items: list[CartLineItemIn] = Field(..., min_length=1, max_length=100)
    promo_code: str | None = None
    customer_email: str
    user_id: str | None = None

    @field_validator("customer_email")
    @classmethod
    def _clean_email(cls, value: str) -> str:
        cleaned = sanitize_email(value)
        if not _EMAIL_RE.match(cleaned):
            raise ValueError("customer_email is not a valid email address")
        return cleaned


class CheckoutIntentRequest(_CartRequest):
    # Refresh the amount of an existing gateway transaction instead of creating one.
    transaction_ref: str | None = None


class QuoteLineItemOut(BaseModel):
    product_id: str
    name: str
    quantity: int
    unit_price_cents: int
    line_total_cents: int


class QuoteOut(BaseModel):
    subtotal_cents: int
    shipping_cents: int
    discount_cents: int
    total_cents: int
    promo_code: str | None = None
    items: list[QuoteLineItemOut]
    dropped_product_ids: list[str] = Field(default_factory=list)


class CheckoutIntentResponse(BaseModel):
    transaction_ref: str
    client_secret: str
    amount_cents: int
    quote: QuoteOut


class CheckoutProcessRequest(_CartRequest):
    # Supplying the same order id again is safe: the stored order is not re-priced.
    order_id: str | None = Field(default=None, min_length=1, max_length=64)
    payment: PaymentIn


class CheckoutProcessResponse(BaseModel):
    success: bool
    order_id: str
    status: str
    payment_reference: str
    transaction_ref: str | None = None
    is_fraud_suspect: bool
    fraud_score: int | None = None
    verified_total_cents: int
    quote: QuoteOut
