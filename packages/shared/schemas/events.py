"""Shared event schema (v1).

The backend stores an append-only event log for checkouts and orders. Admin tooling
reads these events to reconstruct what happened to an order.
"""

from __future__ import annotations

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class EntityTypeV1(str, Enum):
    CHECKOUT = "Checkout"
    ORDER = "Order"


class EventTypeV1(str, Enum):
    CHECKOUT_STARTED = "CHECKOUT_STARTED"
    CHECKOUT_FAILED = "CHECKOUT_FAILED"
    PAYMENT_CONFIRMED = "PAYMENT_CONFIRMED"
    AMOUNT_MISMATCH = "AMOUNT_MISMATCH"
    FRAUD_FLAGGED = "FRAUD_FLAGGED"
    ORDER_CREATED = "ORDER_CREATED"
    ORDER_RESUBMITTED = "ORDER_RESUBMITTED"


class EventV1(BaseModel):
    id: str
    user_id: str | None = None

    entity_type: EntityTypeV1
    entity_id: str

    event_type: EventTypeV1
    payload: dict[str, Any] = Field(default_factory=dict)
    created_at: str
