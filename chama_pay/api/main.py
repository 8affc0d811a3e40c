"""FastAPI application factory"""

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.responses import Response

from chama_pay.api.middleware import CORSHeadersMiddleware, RequestIDMiddleware, MetricsMiddleware, cors_headers
from chama_pay.api.v1 import b2c, callback, stk_push, transaction
from chama_pay.domain.exceptions import DomainException
from chama_pay.infrastructure.observability.logging import setup_logging
from chama_pay.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Chama Pay",
        description="M-Pesa collection, reconciliation and loan disbursement service",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)
    app.add_middleware(CORSHeadersMiddleware, allow_origin=settings.cors_allow_origin)

    @app.exception_handler(DomainException)
    async def domain_exception_handler(request: Request, exc: DomainException):
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(status_code=400, content={"error": "Invalid request body"})

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        logging.error(
            f"Unexpected error: {exc}",
            extra={"request_id": getattr(request.state, "request_id", "unknown")},
        )
        # Rendered outside the middleware stack, so CORS headers are attached here
        return JSONResponse(
            status_code=500,
            content={"error": "Internal server error"},
            headers=cors_headers(settings.cors_allow_origin),
        )

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(stk_push.router, prefix="/v1", tags=["collections"])
    app.include_router(callback.router, prefix="/v1", tags=["callbacks"])
    app.include_router(b2c.router, prefix="/v1", tags=["disbursements"])
    app.include_router(transaction.router, prefix="/v1", tags=["transactions"])

    return app


app = create_app()
