"""FastAPI application factory"""

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from loan_core.api.middleware import RequestIDMiddleware, MetricsMiddleware
from loan_core.api.v1 import audit, clients, projection, redirections, transactions, treasury
from loan_core.infrastructure.observability.logging import setup_logging
from loan_core.config import settings

# Setup structured logging
setup_logging(settings.log_level)


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Loan Accounting Core",
        description="Loan projections, client ledgers, redirections and treasury",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    @app.get("/health")
    def health_check():
        return {"status": "ok", "service": settings.service_name}

    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    app.include_router(projection.router, prefix="/v1", tags=["projection"])
    app.include_router(clients.router, prefix="/v1", tags=["clients"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(redirections.router, prefix="/v1", tags=["redirections"])
    app.include_router(treasury.router, prefix="/v1", tags=["treasury"])
    app.include_router(audit.router, prefix="/v1", tags=["audit"])

    return app


app = create_app()
