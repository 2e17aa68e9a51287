from __future__ import annotations

import logging
import os

from services.api.app.db.database import db_session, get_engine
from services.api.app.db.models import Base, StoreShippingConfig
from services.api.app.settings import parse_bool

logger = logging.getLogger(__name__)


def init_db() -> None:
    if not parse_bool(os.getenv("STOREFRONT_DB_AUTO_CREATE", "true")):
        logger.info("Skipping schema creation (STOREFRONT_DB_AUTO_CREATE is off)")
        return

    engine = get_engine()
    Base.metadata.create_all(bind=engine)

    # Pricing expects exactly one store-wide shipping row.
    db = db_session()
    try:
        if db.get(StoreShippingConfig, StoreShippingConfig.SINGLETON_ID) is None:
            db.add(StoreShippingConfig(id=StoreShippingConfig.SINGLETON_ID, enabled=False))
            db.commit()
    finally:
        db.close()
