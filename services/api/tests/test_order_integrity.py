import pytest
from packages.shared.schemas.order_record_v1 import (
    CheckoutModeV1,
    OrderItemV1,
    OrderRecordV1,
    OrderStatusV1,
)
from services.api.app.services.integrity import OrderSigner, signing_payload


def _order(**overrides) -> OrderRecordV1:
    data = dict(
        id="ORD-1",
        customer_email="a@example.com",
        items=[
            OrderItemV1(
                product_id="mug-1",
                name="Mug",
                quantity=2,
                unit_price_cents=1200,
                line_total_cents=2400,
            ),
            OrderItemV1(
                product_id="tee-1",
                name="Tee",
                quantity=1,
                unit_price_cents=2200,
                line_total_cents=2200,
            ),
        ],
        subtotal_cents=4600,
        shipping_cents=550,
        discount_cents=0,
        total_cents=5150,
        status=OrderStatusV1.PROCESSING,
        checkout_mode=CheckoutModeV1.MANUAL,
        payment_reference="ch_1",
    )
    data.update(overrides)
    return OrderRecordV1(**data)


def test_signing_payload_format() -> None:
    assert signing_payload(_order()) == b'["ORD-1",5150,[["mug-1",2],["tee-1",1]]]'


def test_item_id_containing_separators_cannot_forge_signature() -> None:
    signer = OrderSigner("secret")
    order = _order()
    signature = signer.sign(order)

    merged = order.items[0].model_copy(update={"product_id": "mug-1:2,tee-1", "quantity": 1})
    assert not signer.verify(order.model_copy(update={"items": [merged]}), signature)


def test_signature_verifies_for_untouched_order() -> None:
    signer = OrderSigner("secret")
    order = _order()
    assert signer.verify(order, signer.sign(order))


def test_tampered_total_fails_verification() -> None:
    signer = OrderSigner("secret")
    signature = signer.sign(_order())
    assert not signer.verify(_order(total_cents=1), signature)


def test_tampered_quantity_fails_verification() -> None:
    signer = OrderSigner("secret")
    order = _order()
    signature = signer.sign(order)

    items = [order.items[0].model_copy(update={"quantity": 5}), order.items[1]]
    assert not signer.verify(order.model_copy(update={"items": items}), signature)


def test_swapped_product_fails_verification() -> None:
    signer = OrderSigner("secret")
    order = _order()
    signature = signer.sign(order)

    items = [order.items[0].model_copy(update={"product_id": "gold-1"}), order.items[1]]
    assert not signer.verify(order.model_copy(update={"items": items}), signature)


def test_non_financial_fields_are_not_signed() -> None:
    signer = OrderSigner("secret")
    signature = signer.sign(_order())
    assert signer.verify(_order(customer_email="b@example.com"), signature)


def test_different_secret_or_missing_signature_fails() -> None:
    order = _order()
    signature = OrderSigner("secret").sign(order)
    assert not OrderSigner("other").verify(order, signature)
    assert not OrderSigner("secret").verify(order, None)
    assert not OrderSigner("secret").verify(order, "")


def test_empty_secret_is_rejected() -> None:
    with pytest.raises(ValueError):
        OrderSigner("")
