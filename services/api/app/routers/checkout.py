from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1
from packages.shared.schemas.order_record_v1 import CheckoutModeV1
from services.api.app.db.deps import get_catalog, get_db, get_rate_limiter
from services.api.app.db.models import Customer, Order
from services.api.app.models.checkout import (
    CheckoutIntentRequest,
    CheckoutIntentResponse,
    CheckoutProcessRequest,
    CheckoutProcessResponse,
    ExpressPaymentIn,
    QuoteLineItemOut,
    QuoteOut,
)
from services.api.app.services.catalog_sql import SqlCatalogReader
from services.api.app.services.checkout import (
    AccountSuspendedError,
    AmountMismatchError,
    CheckoutError,
    CheckoutOrchestrator,
    CheckoutResult,
    CustomerAccount,
    InvalidCartError,
    InvalidTotalError,
    OrderConflictError,
    PaymentIncompleteError,
    TransactionAlreadyUsedError,
)
from services.api.app.services.integrity import OrderSigner
from services.api.app.services.order_store import (
    OrderStore,
    build_order_record,
    log_event,
    new_order_id,
    to_record,
)
from services.api.app.services.payment_base import (
    GatewayConfigMissingError,
    PaymentGateway,
    PaymentGatewayError,
)
from services.api.app.services.payment_factory import get_payment_gateway
from services.api.app.services.pricing import PriceQuote
from services.api.app.services.rate_limit import RateLimiter
from services.api.app.settings import CheckoutSettings
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

logger = logging.getLogger(__name__)

router = APIRouter()


def _raise_checkout_http_error(e: Exception) -> None:
    if isinstance(e, AccountSuspendedError):
        raise HTTPException(status_code=403, detail=str(e)) from e

    if isinstance(e, (InvalidCartError, InvalidTotalError)):
        raise HTTPException(status_code=400, detail=str(e)) from e

    if isinstance(e, PaymentIncompleteError):
        raise HTTPException(status_code=402, detail=str(e)) from e

    if isinstance(e, (AmountMismatchError, OrderConflictError, TransactionAlreadyUsedError)):
        raise HTTPException(status_code=409, detail=str(e)) from e

    if isinstance(e, GatewayConfigMissingError):
        logger.error("Checkout unavailable: %s", e)
        raise HTTPException(status_code=500, detail="Payment gateway is not configured") from e

    if isinstance(e, PaymentGatewayError):
        raise HTTPException(status_code=500, detail=str(e)) from e

    if isinstance(e, CheckoutError):
        raise HTTPException(status_code=400, detail=str(e)) from e

    logger.exception("Unexpected checkout failure")
    raise HTTPException(status_code=500, detail="Internal Server Error") from e


@router.post("/checkout/intent", response_model=CheckoutIntentResponse)
def create_checkout_intent(
    payload: CheckoutIntentRequest,
    request: Request,
    db: Session = Depends(get_db),
    catalog: SqlCatalogReader = Depends(get_catalog),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> CheckoutIntentResponse:
    settings = CheckoutSettings.from_env()
    _enforce_rate_limit(limiter, settings, _client_identity(request), "checkout_intent")

    orchestrator = CheckoutOrchestrator(catalog, _gateway_or_http_error(), settings)
    account = _load_account(db, payload.user_id, payload.customer_email)

    try:
        intent, priced = orchestrator.create_intent(
            payload.items,
            payload.promo_code,
            payload.customer_email,
            account=account,
            transaction_ref=payload.transaction_ref,
        )
    except Exception as e:
        _raise_checkout_http_error(e)

    return CheckoutIntentResponse(
        transaction_ref=intent.transaction_ref,
        client_secret=intent.client_secret,
        amount_cents=intent.amount_minor_units,
        quote=_quote_out(priced),
    )


@router.post("/checkout/process", response_model=CheckoutProcessResponse)
def process_checkout(
    payload: CheckoutProcessRequest,
    request: Request,
    db: Session = Depends(get_db),
    catalog: SqlCatalogReader = Depends(get_catalog),
    limiter: RateLimiter = Depends(get_rate_limiter),
) -> CheckoutProcessResponse:
    settings = CheckoutSettings.from_env()
    _enforce_rate_limit(limiter, settings, _client_identity(request), "checkout_process")

    orchestrator = CheckoutOrchestrator(catalog, _gateway_or_http_error(), settings)
    store = OrderStore(OrderSigner(settings.signing_secret))

    order_id = payload.order_id or new_order_id()
    mode = CheckoutModeV1(payload.payment.mode)
    account = _load_account(db, payload.user_id, payload.customer_email)

    try:
        priced = orchestrator.quote_cart(payload.items, payload.promo_code, account)

        existing = store.get(db, order_id)
        if existing is not None:
            # Already paid for. Never charge again; refresh contact fields only.
            store.ensure_matches(existing, priced)
            replay = to_record(existing).model_copy(
                update={"customer_email": payload.customer_email, "user_id": payload.user_id}
            )
            row, _ = store.upsert(db, replay)
            log_event(
                db,
                user_id=payload.user_id,
                entity_type=EntityTypeV1.ORDER,
                entity_id=order_id,
                event_type=EventTypeV1.ORDER_RESUBMITTED,
                event_payload={"checkout_mode": mode.value},
            )
            db.commit()
            return _process_response(row, priced)

        if isinstance(payload.payment, ExpressPaymentIn):
            store.ensure_transaction_unused(db, payload.payment.transaction_ref, order_id)

        log_event(
            db,
            user_id=payload.user_id,
            entity_type=EntityTypeV1.CHECKOUT,
            entity_id=order_id,
            event_type=EventTypeV1.CHECKOUT_STARTED,
            event_payload={"checkout_mode": mode.value, "total_cents": priced.total_cents},
        )
        db.commit()

        result = orchestrator.charge(
            order_id=order_id,
            priced=priced,
            customer_email=payload.customer_email,
            payment=payload.payment,
        )
    except Exception as e:
        _record_failure(db, order_id, payload.user_id, mode, e)
        _raise_checkout_http_error(e)

    record = build_order_record(
        order_id=order_id,
        user_id=payload.user_id,
        customer_email=payload.customer_email,
        mode=mode,
        result=result,
    )

    try:
        row, created = store.upsert(db, record)
        _log_checkout_events(db, record.user_id, order_id, result, created)
        db.commit()
    except (OrderConflictError, TransactionAlreadyUsedError) as e:
        logger.error(
            "Order %s was paid (%s) but conflicts with a stored order",
            order_id,
            result.payment_reference,
        )
        _record_failure(
            db, order_id, payload.user_id, mode, e, payment_reference=result.payment_reference
        )
        _raise_checkout_http_error(e)
    except SQLAlchemyError as e:
        logger.exception(
            "Order %s was paid (%s) but could not be saved",
            order_id,
            result.payment_reference,
        )
        _record_failure(
            db, order_id, payload.user_id, mode, e, payment_reference=result.payment_reference
        )
        # Retrying with the same order id reuses the charge instead of taking a new one.
        raise HTTPException(
            status_code=500,
            detail={
                "message": "Payment was received but the order could not be saved. "
                "Retry with the same order_id.",
                "order_id": order_id,
                "payment_reference": result.payment_reference,
                "retryable": True,
            },
        ) from e

    return _process_response(row, result.quote)


def _log_checkout_events(
    db: Session, user_id: str | None, order_id: str, result: CheckoutResult, created: bool
) -> None:
    log_event(
        db,
        user_id=user_id,
        entity_type=EntityTypeV1.CHECKOUT,
        entity_id=order_id,
        event_type=EventTypeV1.PAYMENT_CONFIRMED,
        event_payload={
            "payment_reference": result.payment_reference,
            "transaction_ref": result.transaction_ref,
            "verified_total_cents": result.verified_total_cents,
        },
    )

    if result.amount_mismatch_cents:
        log_event(
            db,
            user_id=user_id,
            entity_type=EntityTypeV1.CHECKOUT,
            entity_id=order_id,
            event_type=EventTypeV1.AMOUNT_MISMATCH,
            event_payload={
                "quoted_cents": result.verified_total_cents,
                "charged_cents": result.verified_total_cents + result.amount_mismatch_cents,
            },
        )

    if result.is_fraud_suspect:
        log_event(
            db,
            user_id=user_id,
            entity_type=EntityTypeV1.ORDER,
            entity_id=order_id,
            event_type=EventTypeV1.FRAUD_FLAGGED,
            event_payload={"fraud_score": result.fraud_score},
        )

    log_event(
        db,
        user_id=user_id,
        entity_type=EntityTypeV1.ORDER,
        entity_id=order_id,
        event_type=EventTypeV1.ORDER_CREATED if created else EventTypeV1.ORDER_RESUBMITTED,
        event_payload={"total_cents": result.verified_total_cents},
    )


def _record_failure(
    db: Session,
    order_id: str,
    user_id: str | None,
    mode: CheckoutModeV1,
    e: Exception,
    *,
    payment_reference: str | None = None,
) -> None:
    payload = {"checkout_mode": mode.value, "error": type(e).__name__}
    if payment_reference is not None:
        payload["payment_reference"] = payment_reference

    try:
        db.rollback()
        log_event(
            db,
            user_id=user_id,
            entity_type=EntityTypeV1.CHECKOUT,
            entity_id=order_id,
            event_type=EventTypeV1.CHECKOUT_FAILED,
            event_payload=payload,
        )
        db.commit()
    except SQLAlchemyError:
        # Audit is best-effort; the customer still gets the real error.
        logger.exception("Could not record failed checkout %s", order_id)
        db.rollback()


def _enforce_rate_limit(
    limiter: RateLimiter, settings: CheckoutSettings, identity: str, action: str
) -> None:
    allowed = limiter.allow(
        f"{identity}:{action}",
        settings.checkout_rate_limit,
        settings.checkout_rate_window_seconds,
    )
    if not allowed:
        logger.warning("Rate limited %s for %s", action, identity)
        raise HTTPException(
            status_code=429, detail="Too many checkout attempts. Please wait and try again."
        )


def _client_identity(request: Request) -> str:
    # Body fields (user_id, email) are client-chosen and never key the limiter.
    host = request.client.host if request.client else "unknown"
    return f"ip:{host}"


def _gateway_or_http_error() -> PaymentGateway:
    try:
        return get_payment_gateway()
    except ValueError as e:
        raise HTTPException(status_code=500, detail=str(e)) from e
    except PaymentGatewayError as e:
        _raise_checkout_http_error(e)
        raise


def _load_account(db: Session, user_id: str | None, email: str) -> CustomerAccount | None:
    row = db.get(Customer, user_id) if user_id else None
    if row is None:
        row = db.query(Customer).filter(Customer.email == email).first()
    if row is None:
        return None
    return CustomerAccount(id=row.id, email=row.email, is_suspended=row.is_suspended)


def _quote_out(priced: PriceQuote) -> QuoteOut:
    return QuoteOut(
        subtotal_cents=priced.subtotal_cents,
        shipping_cents=priced.shipping_cents,
        discount_cents=priced.discount_cents,
        total_cents=priced.total_cents,
        promo_code=priced.promo_code,
        items=[
            QuoteLineItemOut(
                product_id=item.product_id,
                name=item.name,
                quantity=item.quantity,
                unit_price_cents=item.unit_price_cents,
                line_total_cents=item.line_total_cents,
            )
            for item in priced.items
        ],
        dropped_product_ids=list(priced.dropped_product_ids),
    )


def _process_response(row: Order, priced: PriceQuote) -> CheckoutProcessResponse:
    return CheckoutProcessResponse(
        success=True,
        order_id=row.id,
        status=row.status,
        payment_reference=row.payment_reference,
        transaction_ref=row.transaction_ref,
        is_fraud_suspect=row.is_fraud_suspect,
        fraud_score=row.fraud_score,
        verified_total_cents=row.total_cents,
        quote=_quote_out(priced),
    )
