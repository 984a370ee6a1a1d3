"""Auto-categorization API: application factory and health checks."""

from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from autocat.api.v1 import auto_category_rules, categorization, learned_patterns
from autocat.api.v1 import settings as settings_routes
from autocat.config import settings
from autocat.core.database import async_session_factory, engine
from autocat.core.logging import configure_logging
from autocat.core.middleware import RequestLoggingMiddleware
from autocat.services.categorization_service import CategorizationService

logger = structlog.get_logger()

VERSION = "0.1.0"

ROUTERS = (
    (auto_category_rules.router, "auto-category-rules"),
    (learned_patterns.router, "learned-patterns"),
    (categorization.router, "categorization"),
    (settings_routes.router, "settings"),
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    logger.info("api_starting", env=settings.app_env, version=VERSION)
    yield
    logger.info("api_stopping")
    await engine.dispose()


def create_app() -> FastAPI:
    app = FastAPI(
        title="Auto-categorization API",
        description="Rule and learned-pattern categorization of financial transactions",
        version=VERSION,
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_middleware(RequestLoggingMiddleware)

    app.add_api_route("/health", health_check, methods=["GET"], tags=["system"])
    app.add_api_route("/ready", readiness_check, methods=["GET"], tags=["system"])
    for router, name in ROUTERS:
        app.include_router(router, prefix=f"/api/v1/{name}", tags=[name])
    return app


async def health_check():
    """Liveness: the process is up."""
    return {"status": "healthy", "version": VERSION}


async def readiness_check():
    """Readiness: the database answers and the auto-apply threshold can be resolved."""
    checks = {"database": "unknown", "auto_apply_threshold": None}
    try:
        async with async_session_factory() as session:
            await session.execute(text("SELECT 1"))
            checks["database"] = "ok"
            checks["auto_apply_threshold"] = await CategorizationService(session).get_auto_apply_threshold()
    except SQLAlchemyError as e:
        logger.warning("readiness_database_error", error=str(e))
        checks["database"] = f"error: {e}"
        return {"status": "degraded", "checks": checks}
    return {"status": "ready", "checks": checks}


app = create_app()
