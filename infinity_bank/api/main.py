"""FastAPI application factory"""

import logging

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from starlette.responses import Response

from infinity_bank.api.dependencies import get_request_id
from infinity_bank.api.middleware import RequestIDMiddleware, MetricsMiddleware
from infinity_bank.api.v1 import cards, loans, transactions, users
from infinity_bank.domain.exceptions import (
    AccessDenied,
    DomainException,
    NotFound,
    ReferenceCollision,
)
from infinity_bank.infrastructure.database.session import get_db
from infinity_bank.infrastructure.observability.logging import setup_logging
from infinity_bank.config import settings

# Setup structured logging
setup_logging(settings.log_level)

# Status for domain errors a router did not translate itself; anything else is a 400
DOMAIN_ERROR_STATUS = {
    NotFound: 404,
    AccessDenied: 403,
    ReferenceCollision: 503,
}

ROUTERS = (
    (users.router, "users"),
    (transactions.router, "transactions"),
    (loans.router, "loans"),
    (cards.router, "cards"),
)


def domain_error_status(exc: DomainException) -> int:
    for exc_type, status_code in DOMAIN_ERROR_STATUS.items():
        if isinstance(exc, exc_type):
            return status_code
    return 400


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Infinity Bank",
        description="Accounts, transfers, loans and cards",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.exception_handler(DomainException)
    async def handle_domain_exception(request: Request, exc: DomainException):
        status_code = domain_error_status(exc)
        logging.warning(
            f"Unhandled domain error: {exc}",
            extra={"request_id": get_request_id(request), "error": type(exc).__name__},
        )
        return JSONResponse(status_code=status_code, content={"detail": str(exc)})

    # Health check endpoint, includes a database round trip
    @app.get("/health")
    def health_check(db: Session = Depends(get_db)):
        try:
            db.execute(text("SELECT 1"))
        except SQLAlchemyError as e:
            logging.error(f"Health check database failure: {e}")
            return JSONResponse(
                status_code=503,
                content={"status": "degraded", "service": settings.service_name, "database": "unavailable"},
            )
        return {"status": "ok", "service": settings.service_name, "database": "ok"}

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    for router, tag in ROUTERS:
        app.include_router(router, prefix="/v1", tags=[tag])

    return app


app = create_app()
