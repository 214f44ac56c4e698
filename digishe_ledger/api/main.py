"""FastAPI application factory"""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_client import generate_latest, CONTENT_TYPE_LATEST
from starlette.responses import Response

from digishe_ledger.api.errors import domain_exception_handler
from digishe_ledger.api.middleware import RequestIDMiddleware, MetricsMiddleware
from digishe_ledger.api.v1 import admin, auth, ledger
from digishe_ledger.domain.exceptions import DomainException
from digishe_ledger.domain.ledger import SessionRegistry
from digishe_ledger.infrastructure.observability.logging import setup_logging
from digishe_ledger.config import settings

# Setup structured logging
setup_logging(settings.log_level)


@asynccontextmanager
async def lifespan(app: FastAPI):
    yield
    # Let background storage writes finish before the loop stops
    await app.state.sessions.drain()


def create_app() -> FastAPI:
    """Create and configure FastAPI application"""
    app = FastAPI(
        lifespan=lifespan,
        title="DigiShe Ledger",
        description="Phone sign-in and bookkeeping for small businesses",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
    )

    # Signed-in ledger sessions, keyed by bearer token
    app.state.sessions = SessionRegistry(idle_timeout=settings.session_idle_minutes * 60)

    # Add middleware (order matters: last added = first executed)
    app.add_middleware(MetricsMiddleware)
    app.add_middleware(RequestIDMiddleware)

    app.add_exception_handler(DomainException, domain_exception_handler)

    # Health check endpoint
    @app.get("/health")
    def health_check():
        return {
            "status": "ok",
            "service": settings.service_name,
            "sms_configured": bool(settings.sms_api_key),
            "active_sessions": len(app.state.sessions),
        }

    # Prometheus metrics endpoint
    @app.get("/metrics")
    def metrics():
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)

    # Register API routers
    app.include_router(auth.router, prefix="/v1", tags=["auth"])
    app.include_router(ledger.router, prefix="/v1", tags=["ledger"])
    app.include_router(admin.router, prefix="/v1", tags=["admin"])

    return app


app = create_app()
