"""Checkout orchestration.

Both checkout flows price the cart through `pricing.quote` before touching the payment
gateway, and neither ever reads a client-supplied total:

- manual: the server creates and confirms an off-session charge for the quoted total
- express: the client already confirmed a transaction; the server retrieves it and
  reconciles its amount against the quote
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass

from services.api.app.models.checkout import CartLineItemIn, ExpressPaymentIn, ManualPaymentIn
from services.api.app.services.catalog_base import CatalogReader
from services.api.app.services.payment_base import ChargeResult, IntentResult, PaymentGateway
from services.api.app.services.pricing import PriceQuote, quote
from services.api.app.settings import CheckoutSettings

logger = logging.getLogger(__name__)


class CheckoutError(Exception):
    """Base class for checkout errors that are safe to show to the customer."""


class InvalidCartError(CheckoutError):
    pass


class InvalidTotalError(CheckoutError):
    def __init__(self, total_cents: int) -> None:
        super().__init__(f"Order total must be greater than zero (got {total_cents} cents)")
        self.total_cents = total_cents


class AccountSuspendedError(CheckoutError):
    def __init__(self) -> None:
        super().__init__("This account is suspended and cannot place orders")


class PaymentIncompleteError(CheckoutError):
    def __init__(self, transaction_ref: str, status: str) -> None:
        super().__init__(f"Payment {transaction_ref} has not completed (status={status})")
        self.transaction_ref = transaction_ref
        self.status = status


class AmountMismatchError(CheckoutError):
    def __init__(self, expected_cents: int, charged_cents: int) -> None:
        super().__init__(
            "Charged amount does not match the order total. "
            f"expected={expected_cents} charged={charged_cents}"
        )
        self.expected_cents = expected_cents
        self.charged_cents = charged_cents


class TransactionAlreadyUsedError(CheckoutError):
    def __init__(self, transaction_ref: str, order_id: str) -> None:
        super().__init__(f"Payment {transaction_ref} is already attached to order {order_id}")
        self.transaction_ref = transaction_ref
        self.order_id = order_id


class OrderConflictError(CheckoutError):
    def __init__(self, order_id: str) -> None:
        super().__init__(f"Order {order_id} already exists with different items or total")
        self.order_id = order_id


@dataclass(frozen=True, slots=True)
class CustomerAccount:
    id: str
    email: str
    is_suspended: bool = False


@dataclass(frozen=True, slots=True)
class CheckoutResult:
    success: bool
    payment_reference: str
    transaction_ref: str
    is_fraud_suspect: bool
    fraud_score: int | None
    verified_total_cents: int
    quote: PriceQuote
    # charged - quoted, when outside tolerance. 0 otherwise.
    amount_mismatch_cents: int = 0


class CheckoutOrchestrator:
    def __init__(
        self,
        catalog: CatalogReader,
        gateway: PaymentGateway,
        settings: CheckoutSettings,
    ) -> None:
        self._catalog = catalog
        self._gateway = gateway
        self._settings = settings

    def quote_cart(
        self,
        items: Sequence[CartLineItemIn],
        promo_code: str | None,
        account: CustomerAccount | None = None,
    ) -> PriceQuote:
        """Validate and price a cart. Runs before any gateway interaction."""

        if not items:
            raise InvalidCartError("Cart is empty")

        if account is not None and account.is_suspended:
            logger.warning("Rejected checkout for suspended account %s", account.id)
            raise AccountSuspendedError()

        priced = quote(items, promo_code, self._catalog)
        if priced.total_cents <= 0:
            raise InvalidTotalError(priced.total_cents)
        return priced

    def create_intent(
        self,
        items: Sequence[CartLineItemIn],
        promo_code: str | None,
        customer_email: str,
        account: CustomerAccount | None = None,
        transaction_ref: str | None = None,
    ) -> tuple[IntentResult, PriceQuote]:
        priced = self.quote_cart(items, promo_code, account)
        customer_ref = None
        if transaction_ref is None:
            customer_ref = self._gateway.find_or_create_customer(customer_email)

        intent = self._gateway.create_intent(
            amount_minor_units=priced.total_cents,
            customer_ref=customer_ref,
            transaction_ref=transaction_ref,
        )
        return intent, priced

    def process(
        self,
        *,
        order_id: str,
        items: Sequence[CartLineItemIn],
        promo_code: str | None,
        customer_email: str,
        payment: ManualPaymentIn | ExpressPaymentIn,
        account: CustomerAccount | None = None,
    ) -> CheckoutResult:
        priced = self.quote_cart(items, promo_code, account)
        return self.charge(
            order_id=order_id, priced=priced, customer_email=customer_email, payment=payment
        )

    def charge(
        self,
        *,
        order_id: str,
        priced: PriceQuote,
        customer_email: str,
        payment: ManualPaymentIn | ExpressPaymentIn,
    ) -> CheckoutResult:
        """Take payment for an already-validated quote."""

        mismatch = 0
        if isinstance(payment, ManualPaymentIn):
            charge = self._charge_manual(order_id, priced, customer_email, payment)
        elif isinstance(payment, ExpressPaymentIn):
            charge, mismatch = self._reconcile_express(priced, payment)
        else:
            raise InvalidCartError(f"Unsupported payment mode: {type(payment).__name__}")

        score = charge.risk_score
        suspect = score is not None and score > self._settings.fraud_score_threshold
        if suspect:
            logger.warning(
                "Order %s flagged as fraud suspect: risk_score=%s threshold=%s",
                order_id,
                score,
                self._settings.fraud_score_threshold,
            )

        return CheckoutResult(
            success=True,
            payment_reference=charge.charge_id or charge.transaction_ref,
            transaction_ref=charge.transaction_ref,
            is_fraud_suspect=suspect,
            fraud_score=score,
            verified_total_cents=priced.total_cents,
            quote=priced,
            amount_mismatch_cents=mismatch,
        )

    def _charge_manual(
        self,
        order_id: str,
        priced: PriceQuote,
        customer_email: str,
        payment: ManualPaymentIn,
    ) -> ChargeResult:
        customer_ref = self._gateway.find_or_create_customer(customer_email)
        if payment.save_payment_method:
            self._gateway.attach_payment_method(customer_ref, payment.payment_method_ref)

        charge = self._gateway.create_or_confirm_charge(
            amount_minor_units=priced.total_cents,
            customer_ref=customer_ref,
            payment_method_ref=payment.payment_method_ref,
            # Same order and amount -> same key, so a client retry cannot double-charge.
            idempotency_key=f"checkout:{order_id}:{priced.total_cents}",
        )
        if not charge.succeeded:
            raise PaymentIncompleteError(charge.transaction_ref, charge.status)
        return charge

    def _reconcile_express(
        self, priced: PriceQuote, payment: ExpressPaymentIn
    ) -> tuple[ChargeResult, int]:
        charge = self._gateway.retrieve_charge(payment.transaction_ref)
        if not charge.succeeded:
            raise PaymentIncompleteError(charge.transaction_ref, charge.status)

        diff = charge.amount_minor_units - priced.total_cents
        if abs(diff) <= self._settings.amount_tolerance_cents:
            return charge, 0

        if self._settings.reject_amount_mismatch:
            raise AmountMismatchError(priced.total_cents, charge.amount_minor_units)

        logger.warning(
            "Express payment %s amount mismatch: quoted=%s charged=%s",
            charge.transaction_ref,
            priced.total_cents,
            charge.amount_minor_units,
        )
        return charge, diff
