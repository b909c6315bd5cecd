"""
Application factory.

    uvicorn vehicle_service.main:create_app --factory

or `python -m vehicle_service`.
"""

import logging
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI

from .api.v1.error_handlers import register_exception_handlers
from .api.v1.timeout import TimeoutGuard
from .api.v1.vehicles import router as vehicles_router
from .config.settings import Settings, get_settings
from .core.logging import RequestIDMiddleware, setup_logging, stop_queue_logging
from .exceptions.base import ServiceError
from .persistence.context import StoreContext
from .persistence.vehicle_repository import build_vehicle_repository
from .services.backends.damage_service import DamageService, build_damage_client
from .services.vehicle_service import VehicleService
from .store.client import DocumentClient
from .store.session import create_engine, create_schema, create_sessionmaker
from .utils.logging import get_project_name, get_project_version

logger = logging.getLogger(__name__)

WARMUP_VEHICLE_ID = "1"


def create_app(
    settings: Settings | None = None,
    *,
    damage_transport: httpx.AsyncBaseTransport | None = None,
    configure_logging: bool = True,
) -> FastAPI:
    """
    Build the FastAPI app.

    Args:
        settings: defaults to get_settings() (environment / .env).
        damage_transport: optional httpx transport for the damage backend (tests).
        configure_logging: install the dictConfig logging on startup.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if configure_logging:
            setup_logging(settings)

        engine = create_engine(settings)
        client = DocumentClient(
            create_sessionmaker(engine),
            procedure_batch_size=settings.DATABASE_PROCEDURE_BATCH_SIZE,
        )
        context = StoreContext(client, settings, prepare=lambda: create_schema(engine))
        repository = build_vehicle_repository(context)
        damage_client = build_damage_client(settings, transport=damage_transport)

        app.state.store_context = context
        app.state.vehicle_repository = repository
        app.state.vehicle_service = VehicleService(repository, DamageService(damage_client, settings))

        # Resolve the store resources before the first request; the service still
        # starts (and resolves lazily later) when the store is not reachable yet.
        try:
            await repository.find_one(WARMUP_VEHICLE_ID)
            logger.info("startup.warmup.success", extra={"collection": repository.collection_id})
        except ServiceError as exc:
            logger.warning(
                "startup.warmup.failed",
                extra={"collection": repository.collection_id, "error_type": type(exc).__name__, "error": str(exc)},
            )

        logger.info("startup.ready", extra={"env": settings.ENV, "port": settings.PORT})
        try:
            yield
        finally:
            await damage_client.aclose()
            await engine.dispose()
            logger.info("shutdown.complete")
            if configure_logging:
                stop_queue_logging()

    app = FastAPI(
        title=get_project_name(),
        version=get_project_version(),
        lifespan=lifespan,
        redirect_slashes=False,
    )
    app.state.settings = settings
    app.state.timeout_guard = TimeoutGuard(settings.REQUEST_TIMEOUT_MS)

    app.add_middleware(RequestIDMiddleware)
    register_exception_handlers(app)
    app.include_router(vehicles_router)

    return app
