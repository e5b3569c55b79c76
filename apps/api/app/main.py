"""FastAPI application entry point."""
import logging
import uuid
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text

from app.core.config import settings
from app.core.errors import register_exception_handlers
from app.core.structured_logging import request_log_context
from app.db.session import engine

logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logger.info("Sentry initialized for error tracking")

# ============================================================================
# Rate Limiting
# ============================================================================

from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from app.core.rate_limit import limiter


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.AUTO_CREATE_TABLES:
        from app.db import models  # noqa: F401  (register tables)
        from app.db.base import Base

        Base.metadata.create_all(bind=engine)
        logger.info("Database tables created")
    elif settings.AUTO_MIGRATE:
        from app.core.migrations import upgrade_to_head

        upgrade_to_head(engine)
    yield


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Study Advisory API",
    description="Case management for international study advisory",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
    lifespan=lifespan,
)

# Add rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

register_exception_handlers(app)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "X-Requested-With", "X-Request-ID"],
    expose_headers=["X-Request-ID", "Content-Disposition"],
)


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Propagate (or mint) X-Request-ID and log requests that blow up."""
    request_id = request.headers.get("x-request-id") or uuid.uuid4().hex
    request.state.request_id = request_id
    try:
        response = await call_next(request)
    except Exception:
        logger.exception("Unhandled request error", extra=request_log_context(request))
        raise
    response.headers["X-Request-ID"] = request_id
    return response


# ============================================================================
# Routers
# ============================================================================

from app.routers import (
    admin,
    admin_notifications,
    admissions,
    agents,
    audit,
    auth,
    chat,
    counselors,
    notifications,
    service_requests,
    students,
    tasks,
    upload,
)
from app.routers import websocket as ws_router

API_ROUTERS = (
    auth.router,
    students.router,
    counselors.router,
    service_requests.router,
    admin.router,
    admin_notifications.router,
    agents.router,
    tasks.router,
    admissions.router,
    chat.router,
    notifications.router,
    upload.router,
    audit.router,
)

# Every router is served under both the unversioned and the v1 prefix
for prefix in ("/api", "/api/v1"):
    for api_router in API_ROUTERS:
        app.include_router(api_router, prefix=prefix)

# WebSocket for realtime events
app.include_router(ws_router.router)


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
