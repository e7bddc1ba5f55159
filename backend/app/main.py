import logging

from fastapi import FastAPI

from app import models  # noqa: F401
from app.api.auth import router as auth_router
from app.api.batches import router as batch_router
from app.api.health import router as health_router
from app.api.observability import router as observability_router
from app.api.scheduler import router as scheduler_router
from app.api.tank_assignments import router as tank_assignment_router
from app.api.tanks import router as tank_router
from app.core.config import settings
from app.core.database import Base, engine
from app.core.errors import register_error_handlers
from app.core.observability_middleware import ObservabilityMiddleware


def create_app() -> FastAPI:
    logging.basicConfig(level=settings.log_level)
    app = FastAPI(title=settings.app_name)

    if settings.auto_create_tables:
        Base.metadata.create_all(bind=engine)

    app.add_middleware(ObservabilityMiddleware)
    register_error_handlers(app)

    app.include_router(health_router, prefix=settings.api_prefix)
    app.include_router(auth_router, prefix=settings.api_prefix)
    app.include_router(tank_router, prefix=settings.api_prefix)
    app.include_router(batch_router, prefix=settings.api_prefix)
    app.include_router(scheduler_router, prefix=settings.api_prefix)
    app.include_router(tank_assignment_router, prefix=settings.api_prefix)
    app.include_router(observability_router, prefix=settings.api_prefix)
    return app


app = create_app()
