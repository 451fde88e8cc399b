"""
Directory Import Core — HTTP entry point.

Serves the stateless helpers of an import wizard: header mappings,
action types and report downloads. Import sessions themselves talk to
the directory backend directly (see services/import_session_service.py).
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import structlog

from config import settings
from models.report import ReportFormat
from routes import actions_router, mappings_router, reports_router
from services.action_normalizer import action_type_catalog

API_VERSION = "0.1.0"
ROUTERS = [mappings_router, actions_router, reports_router]


def configure_logging() -> None:
    """JSON lines in production, console output elsewhere, at settings.log_level."""
    logging.basicConfig(format="%(message)s", level=settings.log_level)
    renderer = (
        structlog.processors.JSONRenderer() if settings.is_production
        else structlog.dev.ConsoleRenderer()
    )
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()
logger = structlog.get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Announce which directory backend this instance is configured for."""
    logger.info(
        "application_starting",
        environment=settings.environment,
        debug=settings.debug,
        backend_url=settings.backend_url,
        hub_url=settings.hub_url,
        routes=[router.prefix for router in ROUTERS],
    )
    yield
    logger.info("application_shutting_down")


app = FastAPI(
    title="Directory Import Core",
    description="Header mappings, action types and import reports for directory imports",
    version=API_VERSION,
    lifespan=lifespan,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ===================
# SERVICE ENDPOINTS
# ===================

@app.get("/health")
async def health_check():
    """Liveness plus the backend and hub this instance points at."""
    return {
        "status": "healthy",
        "timestamp": datetime.utcnow().isoformat(),
        "environment": settings.environment,
        "backend": {
            "url": settings.backend_url,
            "hub": settings.hub_url,
        },
    }


@app.get("/")
async def root():
    """Where to find things."""
    return {
        "name": "Directory Import Core API",
        "version": API_VERSION,
        "docs": "/docs" if settings.debug else None,
        "health": "/health",
        "endpoints": {
            router.prefix.rsplit("/", 1)[-1]: router.prefix for router in ROUTERS
        },
        "actionTypes": len(action_type_catalog()),
        "reportFormats": [fmt.value for fmt in ReportFormat],
    }


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Anything a route did not turn into an AppError ends up here as INTERNAL_ERROR."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error=str(exc),
        error_type=type(exc).__name__,
    )
    return JSONResponse(
        status_code=500,
        content={
            "error": {
                "code": "INTERNAL_ERROR",
                "message": "An unexpected error occurred",
                "details": str(exc) if settings.debug else None,
                "timestamp": datetime.utcnow().isoformat(),
            }
        },
    )


for router in ROUTERS:
    app.include_router(router)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "main:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.debug,
    )
