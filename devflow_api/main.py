from __future__ import annotations

import logging
import sys
from datetime import UTC, datetime
from typing import Annotated

import psutil
from fastapi import Depends, FastAPI
from sqlalchemy.engine import Engine

from devflow_api import __version__
from devflow_api.config import Settings, get_settings
from devflow_api.database import get_engine, init_schema, ping
from devflow_api.entities.router import router as entities_router
from devflow_api.logging import configure_logging
from devflow_api.schemas import HealthResponse
from devflow_api.traceability.router import router as traceability_router

settings = get_settings()

configure_logging(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    log_file=settings.log_file,
    enable_structured_logging=settings.structured_logging,
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="DevFlow Studio",
    version=__version__,
    description="Product pipeline artifacts and traceability service",
    docs_url="/docs" if settings.enable_docs else None,
    redoc_url="/redoc" if settings.enable_docs else None,
)

if settings.enable_cors:
    from fastapi.middleware.cors import CORSMiddleware

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins or ["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def add_security_headers(request, call_next):
    response = await call_next(request)
    response.headers["X-Content-Type-Options"] = "nosniff"
    response.headers["X-Frame-Options"] = "DENY"
    return response


app.include_router(entities_router)
if settings.traceability.enabled:
    app.include_router(traceability_router)


@app.on_event("startup")
async def startup_event():
    """Create missing tables when the schema is managed by the service."""
    try:
        current = get_settings()
        if current.db.create_schema:
            init_schema(get_engine())
    except Exception as e:
        logger.error(f"Error initializing database schema: {e}")


SettingsDep = Annotated[Settings, Depends(get_settings)]
EngineDep = Annotated[Engine, Depends(get_engine)]


@app.get("/health", response_model=HealthResponse)
def health() -> HealthResponse:
    return HealthResponse(status="ok", version=__version__, timestamp=datetime.now(UTC))


@app.get("/health/detailed")
def detailed_health(settings: SettingsDep, engine: EngineDep) -> dict:
    """Detailed health check for production monitoring."""
    try:
        database_ok = ping(engine)
        health_info = {
            "status": "healthy" if database_ok else "degraded",
            "version": __version__,
            "timestamp": datetime.now(UTC).isoformat(),
            "environment": {
                "python_version": f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}",
                "traceability_enabled": settings.traceability.enabled,
            },
            "database": {
                "dialect": engine.dialect.name,
                "reachable": database_ok,
            },
        }

        process = psutil.Process()
        health_info["system"] = {
            "cpu_percent": psutil.cpu_percent(interval=0.1),
            "memory_percent": psutil.virtual_memory().percent,
            "process_memory_mb": round(process.memory_info().rss / 1024 / 1024, 2),
            "num_threads": process.num_threads(),
        }

        return health_info

    except Exception as e:
        logger.error(f"Detailed health check failed: {e}")
        return {
            "status": "error",
            "error": str(e),
            "timestamp": datetime.now(UTC).isoformat(),
        }
