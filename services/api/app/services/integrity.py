from __future__ import annotations

import hashlib
import hmac
import json

from packages.shared.schemas.order_record_v1 import OrderRecordV1


class OrderSigner:
    """Keyed tamper-evidence for stored orders.

    The digest covers the order id, its total and the ordered (product_id, quantity)
    pairs. Any edit to those fields that bypasses `sign` makes `verify` fail. This is not
    encryption; the record itself stays readable.
    """

    def __init__(self, secret: str) -> None:
        if not secret:
            raise ValueError("Order signing secret must not be empty")
        self._key = secret.encode("utf-8")

    def sign(self, order: OrderRecordV1) -> str:
        return hmac.new(self._key, signing_payload(order), hashlib.sha256).hexdigest()

    def verify(self, order: OrderRecordV1, signature: str | None) -> bool:
        if not signature:
            return False
        return hmac.compare_digest(self.sign(order), signature)


def signing_payload(order: OrderRecordV1) -> bytes:
    # JSON keeps ids containing separators from colliding with other item lists.
    pairs = [[item.product_id, item.quantity] for item in order.items]
    return json.dumps([order.id, order.total_cents, pairs], separators=(",", ":")).encode("utf-8")
