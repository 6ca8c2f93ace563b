"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from copra_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from copra_ledger.api.v1 import loans, suppliers, transactions
from copra_ledger.infrastructure.database.session import init_db
from copra_ledger.infrastructure.observability.logging import setup_logging
from copra_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fresh databases get their tables on first boot; create_all skips existing ones
    init_db()
    yield


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        title="Copra Ledger",
        description="Copra purchase ledger with supplier credit scoring and loan auto-debit",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
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

    app.include_router(suppliers.router, prefix="/v1", tags=["suppliers"])
    app.include_router(transactions.router, prefix="/v1", tags=["transactions"])
    app.include_router(loans.router, prefix="/v1", tags=["loans"])

    return app


app = create_app()
