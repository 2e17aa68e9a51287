from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException
from packages.shared.schemas.events import EntityTypeV1, EventTypeV1, EventV1
from services.api.app.db.deps import get_db
from services.api.app.db.models import EventLog
from services.api.app.models.order import OrderDetail
from services.api.app.services.integrity import OrderSigner
from services.api.app.services.order_store import OrderStore, to_record
from services.api.app.settings import CheckoutSettings
from sqlalchemy.orm import Session

router = APIRouter()


@router.get("/orders/{order_id}", response_model=OrderDetail)
def get_order(order_id: str, db: Session = Depends(get_db)) -> OrderDetail:
    store = OrderStore(OrderSigner(CheckoutSettings.from_env().signing_secret))
    row = store.get(db, order_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Order not found")

    return OrderDetail(order=to_record(row), signature_valid=store.verify(row))


@router.get("/orders/{order_id}/events", response_model=list[EventV1])
def get_order_events(order_id: str, db: Session = Depends(get_db)) -> list[EventV1]:
    rows = (
        db.query(EventLog)
        .filter(EventLog.entity_id == order_id)
        .order_by(EventLog.created_at.asc())
        .limit(200)
        .all()
    )

    return [
        EventV1(
            id=r.id,
            user_id=r.user_id,
            entity_type=EntityTypeV1(r.entity_type),
            entity_id=r.entity_id,
            event_type=EventTypeV1(r.event_type),
            payload=r.event_payload_json,
            created_at=r.created_at.isoformat(),
        )
        for r in rows
    ]
