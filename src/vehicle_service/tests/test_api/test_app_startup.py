import logging

from starlette.testclient import TestClient

from vehicle_service.main import create_app
from vehicle_service.persistence.vehicle_repository import VEHICLE_COLLECTION_ID

from ..test_fixtures.settings_fixtures import make_settings


def test_startup_resolves_store_resources(app):
    """
    Behavior:
                - Starting the app runs one warm-up lookup.
                - The database, collection and bulk-delete procedure are resolved before the first request.
    """
    with TestClient(app) as client:
        resources = client.app.state.store_context.cached(VEHICLE_COLLECTION_ID)

        assert resources is not None
        assert resources.bulk_delete_procedure["id"] == "bulkDelete"


def test_settings_are_exposed_on_app_state(app, api_settings):
    assert app.state.settings is api_settings
    assert app.state.timeout_guard.timeout_ms == api_settings.REQUEST_TIMEOUT_MS


def test_unreachable_store_does_not_prevent_startup(tmp_path, damage_backend, caplog):
    """
    Behavior:
                - The store file lives in a directory that does not exist.
                - Startup logs the failed warm-up and the app still serves requests (with 503).

    Importance:
                - The service must come up before its database; resources are resolved lazily later.
    """
    settings = make_settings(tmp_path / "missing" / "dir")
    app = create_app(settings, damage_transport=damage_backend.transport, configure_logging=False)

    with caplog.at_level(logging.WARNING):
        with TestClient(app, raise_server_exceptions=False) as client:
            assert client.app.state.store_context.cached(VEHICLE_COLLECTION_ID) is None

            response = client.get("/vehicles")

    assert response.status_code == 503
    assert any(r.getMessage() == "startup.warmup.failed" for r in caplog.records)
