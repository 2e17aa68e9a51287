from __future__ import annotations

from collections.abc import Generator

from fastapi import Depends, Request
from services.api.app.db.database import db_session
from services.api.app.services.catalog_sql import SqlCatalogReader
from services.api.app.services.rate_limit import RateLimiter
from sqlalchemy.orm import Session


def get_db() -> Generator[Session, None, None]:
    db = db_session()
    try:
        yield db
    finally:
        db.close()


def get_catalog(db: Session = Depends(get_db)) -> SqlCatalogReader:
    return SqlCatalogReader(db)


def get_rate_limiter(request: Request) -> RateLimiter:
    # Created and started by the app's startup hook.
    return request.app.state.rate_limiter
