import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from prometheus_fastapi_instrumentator import Instrumentator
from redis.asyncio import Redis

from pseudoidc.config import config
from pseudoidc.http_client import HTTPClient
from pseudoidc.logging import configure_logger
from pseudoidc.oidc.callback import CallbackController
from pseudoidc.oidc.cookies import (
    pending_login_cookie_session,
    session_cookie_session,
)
from pseudoidc.oidc.provider import discover_provider
from pseudoidc.oidc.routes import pseudoidc_router
from pseudoidc.oidc.service import PseudoidcService
from pseudoidc.oidc.store import (
    AuthorizationStateStore,
    MemoryAuthorizationStateStore,
    RedisAuthorizationStateStore,
)
from pseudoidc.tracing import register_tracer

logger = logging.getLogger(__name__)


def build_state_store(redis: Redis | None) -> AuthorizationStateStore:
    if redis is None:
        logger.warning("Login attempts are kept in memory, use Redis in production")
        return MemoryAuthorizationStateStore()
    return RedisAuthorizationStateStore(redis)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logger()
    redis = Redis.from_url(config.redis.dsn()) if config.state_store == "redis" else None
    async with HTTPClient() as http_client:
        # a missing or unreachable provider configuration stops the startup
        descriptor = await discover_provider(config.pseudoidc, http_client)
        store = build_state_store(redis)
        app.state.pseudoidc_service = PseudoidcService(
            descriptor,
            store,
            CallbackController.create(descriptor, store, http_client),
            pending_login_cookie_session,
            session_cookie_session,
        )
        logger.info(f"PseudOIDC client ready for issuer {descriptor.issuer}")
        try:
            yield
        finally:
            if redis is not None:
                await redis.aclose()


app = FastAPI(
    title=config.app_name,
    version="1.0.0",
    debug=config.debug_mode,
    lifespan=lifespan,
)
register_tracer(app)
Instrumentator().instrument(app).expose(app, include_in_schema=False)
app.include_router(pseudoidc_router)


@app.get("/", include_in_schema=False)
def read_root(request: Request):
    return {
        "message": "Welcome to the PseudOIDC authentication service",
        "login": str(request.url_for("pseudoidc_login")),
    }


@app.get("/_status/check", include_in_schema=False)
def health_check():
    return {"status": "OK"}
