"""FastAPI application wiring for the authentication service."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

import redis
from fastapi import FastAPI, Response
from psycopg_pool import ConnectionPool

from .api.routes import router as v1_router
from .config import Settings, get_settings
from .domain.contracts import AccountStore
from .domain.service import AuthenticationService
from .redis_repository import RedisAccountStore
from .repository import PostgresAccountStore

logger = logging.getLogger(__name__)

settings = get_settings()


def build_store(settings: Settings) -> AccountStore:
    """Instantiate the configured account store backend."""
    if settings.store_backend == "redis":
        logger.info("account store configured for redis backend")
        return RedisAccountStore(redis.from_url(settings.redis_url))
    if settings.store_backend != "postgres":
        raise ValueError(f"unsupported account store backend: {settings.store_backend}")

    pool = ConnectionPool(settings.database_url, open=False)
    pool.open()
    store = PostgresAccountStore(pool)
    store.ensure_schema()
    logger.info("account store configured for postgres backend")
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Open the account store once for the app lifecycle and close it on shutdown."""
    store = build_store(settings)
    app.state.account_store = store
    app.state.authentication_service = AuthenticationService(store)
    try:
        yield
    finally:
        store.close()


app = FastAPI(title=settings.app_name, version=settings.version, lifespan=lifespan)


@app.get("/healthz", tags=["health"])
def healthz() -> dict[str, str]:
    """Return a minimal readiness indicator used by orchestration systems."""
    return {"status": "ok"}


app.include_router(v1_router)


# Prometheus metrics endpoint for Prometheus scrapes
try:
    from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

    @app.get("/metrics")
    def metrics() -> Response:
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
except ImportError:  # pragma: no cover - metrics are optional in dev
    pass
