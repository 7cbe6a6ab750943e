"""
FastAPI application entry point for the resilience layer.
"""

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from prometheus_fastapi_instrumentator import Instrumentator

from resilience_layer.api.dependencies import get_container
from resilience_layer.api.error_handlers import EXCEPTION_HANDLERS
from resilience_layer.api.middleware import RequestTracingMiddleware
from resilience_layer.api.routes import router
from resilience_layer.config import settings
from resilience_layer.logging_config import configure_logging
from resilience_layer.persistence.redis_client import RedisClient
from resilience_layer.persistence.store import RedisStore

# Configure structured logging before anything logs
configure_logging(settings.LOG_LEVEL, settings.ENVIRONMENT, app_version=settings.APP_VERSION)
logger = structlog.get_logger(__name__)

app = FastAPI(
    title=settings.APP_NAME,
    description="Retry, circuit breaker, fallback, scheduling, batching and cost read models",
    version=settings.APP_VERSION,
    docs_url="/docs",
    redoc_url="/redoc",
)

# Request tracing middleware (must be first for request_id in all logs)
app.add_middleware(RequestTracingMiddleware)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for exc_class, handler in EXCEPTION_HANDLERS.items():
    app.add_exception_handler(exc_class, handler)

app.include_router(router)


@app.on_event("startup")
async def startup():
    """Build the component container eagerly so the first request does not pay for it."""
    container = get_container()
    store_reachable = None
    if isinstance(container.store, RedisStore):
        store_reachable = await RedisClient.ping(container.store.redis)
    logger.info(
        "Application startup",
        store_reachable=store_reachable,
        version=settings.APP_VERSION,
        environment=settings.ENVIRONMENT,
        store_backend=settings.STORE_BACKEND,
        batching_enabled=container.aggregator is not None,
    )


@app.on_event("shutdown")
async def shutdown():
    """Let in-flight scheduler batches settle, then release clients and pools."""
    logger.info("Application shutdown")
    await get_container().close()
    logger.info("Application shutdown complete")


# Prometheus metrics instrumentation
if settings.PROMETHEUS_ENABLED:
    Instrumentator().instrument(app).expose(app)


@app.get("/")
async def root():
    return {
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "docs": "/docs",
        "health": "/health",
        "metrics": "/metrics" if settings.PROMETHEUS_ENABLED else None,
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "resilience_layer.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,  # Only for development
    )
