from __future__ import annotations

from packages.shared.schemas.order_record_v1 import OrderRecordV1
from pydantic import BaseModel


class OrderDetail(BaseModel):
    order: OrderRecordV1
    signature_valid: bool
