"""
Core pytest configuration for the test suite.

Provides the pieces every test layer needs: quiet third-party loggers, the
application logging config, test Settings and a per-test SQLite document store.

Domain-specific fixtures live in:
- tests/test_fixtures/repository_fixtures.py
- tests/test_fixtures/service_fixtures.py
- tests/test_fixtures/api_fixtures.py
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import AsyncGenerator

# -------------------------------
# Early logging tuning
# -------------------------------
# Keep this block above the project imports so collection is not spammed by
# libraries that configure logging on import.
NOISY_LOGGERS = (
    "sqlalchemy",
    "sqlalchemy.engine",
    "sqlalchemy.engine.Engine",
    "asyncio",
    "aiosqlite",
    "httpx",
    "httpcore",
)
for _name in NOISY_LOGGERS:
    logging.getLogger(_name).setLevel(logging.WARNING)

import pytest
from pytest import FixtureRequest
from sqlalchemy.ext.asyncio import AsyncEngine

from vehicle_service.config.settings import Settings
from vehicle_service.core.logging.builder import setup_logging, stop_queue_logging
from vehicle_service.persistence.context import StoreContext
from vehicle_service.persistence.document_repository import DocumentRepository
from vehicle_service.persistence.entities import VehicleEntity
from vehicle_service.persistence.vehicle_repository import build_vehicle_repository
from vehicle_service.store.client import DocumentClient
from vehicle_service.store.session import create_engine, create_schema, create_sessionmaker, drop_schema

from .test_fixtures.settings_fixtures import make_settings

logger = logging.getLogger(__name__)


# The `autouse=True` part means pytest applies this fixture to the whole session
# without tests asking for it.
@pytest.fixture(scope="session", autouse=True)
def configure_logging(request: FixtureRequest, tmp_path_factory):
    """
    Install the application logging config once per session.

    dictConfig replaces root handlers, so pytest's capture handler is re-attached
    afterwards to keep `caplog.records` working.
    """
    setup_logging(make_settings(tmp_path_factory.mktemp("logging")))

    caplog_plugin = request.config.pluginmanager.getplugin("logging-plugin")
    handler = getattr(caplog_plugin, "caplog_handler", None)
    if handler is not None:
        logging.getLogger().addHandler(handler)

    yield

    stop_queue_logging()


# ------------------------------------------------------------------------------------------------
# STORE FIXTURES
# ------------------------------------------------------------------------------------------------


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return make_settings(tmp_path)


@pytest.fixture
async def async_engine(settings: Settings) -> AsyncGenerator[AsyncEngine, None]:
    """
    Engine bound to a fresh SQLite file under tmp_path; the schema is created
    up front and dropped afterwards.
    """
    engine = create_engine(settings)
    await create_schema(engine)

    yield engine

    await drop_schema(engine)
    await engine.dispose()


@pytest.fixture
def document_client(async_engine: AsyncEngine, settings: Settings) -> DocumentClient:
    return DocumentClient(
        create_sessionmaker(async_engine),
        procedure_batch_size=settings.DATABASE_PROCEDURE_BATCH_SIZE,
    )


@pytest.fixture
def store_context(document_client: DocumentClient, settings: Settings) -> StoreContext:
    return StoreContext(document_client, settings)


@pytest.fixture
def vehicle_repository(store_context: StoreContext) -> DocumentRepository[VehicleEntity]:
    return build_vehicle_repository(store_context)


# Domain fixtures, registered globally
from .test_fixtures.repository_fixtures import (  # noqa: E402
    created_vehicle,
    flaky_client,
    make_vehicle,
    sample_vehicle_data,
)
from .test_fixtures.service_fixtures import (  # noqa: E402
    damage_backend,
    damage_service,
    in_memory_repository,
    vehicle_service,
)
from .test_fixtures.api_fixtures import api_client, api_settings, app  # noqa: E402
