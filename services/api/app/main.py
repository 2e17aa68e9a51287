"""Storefront checkout API service entrypoint."""

from fastapi import FastAPI

from services.api.app.db.init_db import init_db
from services.api.app.logging_config import configure_logging
from services.api.app.routers.checkout import router as checkout_router
from services.api.app.routers.order import router as order_router
from services.api.app.services.rate_limit import RateLimiter
from services.api.app.settings import CheckoutSettings

app = FastAPI(title="Storefront Checkout API")

app.include_router(checkout_router)
app.include_router(order_router)


@app.on_event("startup")
def _startup() -> None:
    configure_logging()
    init_db()

    settings = CheckoutSettings.from_env()
    limiter = RateLimiter(sweep_interval_seconds=settings.rate_limit_sweep_seconds)
    limiter.start()
    app.state.rate_limiter = limiter


@app.on_event("shutdown")
def _shutdown() -> None:
    limiter = getattr(app.state, "rate_limiter", None)
    if limiter is not None:
        limiter.stop()


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}
