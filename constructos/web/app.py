"""FastAPI application for the ConstructOS estimating engine."""

from __future__ import annotations

from contextlib import asynccontextmanager
from uuid import uuid4

import structlog
from fastapi import FastAPI, Request
from prometheus_fastapi_instrumentator import Instrumentator
from starlette.middleware.base import BaseHTTPMiddleware

from constructos.core.logging import configure_logging
from constructos.db.connection import close_db
from constructos.web.errors import register_error_handlers
from constructos.web.routes import audit, conversion, grouping_rules, pricing, workflow

# Initialize structured logging
configure_logging()
logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    await close_db()


app = FastAPI(
    title="ConstructOS Estimating API",
    description="Pricing, approval workflow and quote-to-project conversion",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)


# Request Logging Middleware
class RequestLoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        structlog.contextvars.clear_contextvars()

        request_id = request.headers.get("X-Request-ID", str(uuid4()))
        structlog.contextvars.bind_contextvars(request_id=request_id)

        logger.info(
            "request_started",
            method=request.method,
            path=request.url.path,
            client_ip=request.client.host if request.client else None,
        )

        try:
            response = await call_next(request)

            logger.info(
                "request_completed",
                status_code=response.status_code,
            )
            return response

        except Exception as exc:
            logger.error("request_failed", error=str(exc))
            raise


app.add_middleware(RequestLoggingMiddleware)

# Prometheus Metrics
Instrumentator().instrument(app).expose(app)

register_error_handlers(app)

# Include Routers
app.include_router(pricing.router)
app.include_router(workflow.router)
app.include_router(conversion.router)
app.include_router(grouping_rules.router)
app.include_router(audit.router)


@app.get("/health")
async def health():
    return {"status": "ok"}
