import pytest

from vehicle_service.exceptions.base import HttpError, RepositoryError
from vehicle_service.exceptions.mapper import VALIDATION_FAILURE_MESSAGE
from vehicle_service.persistence.context import StoreContext
from vehicle_service.persistence.document_repository import DocumentRepository
from vehicle_service.persistence.entities import Color, VehicleEntity
from vehicle_service.persistence.interfaces import Repository
from vehicle_service.persistence.vehicle_repository import VEHICLE_COLLECTION_ID, build_vehicle_repository
from vehicle_service.store.client import DocumentClient
from vehicle_service.store.query import by_id
from vehicle_service.store.session import create_sessionmaker

from ..test_fixtures.repository_fixtures import FlakyDocumentClient


def test_document_repository_satisfies_repository_protocol(vehicle_repository):
    assert isinstance(vehicle_repository, Repository)


@pytest.mark.asyncio
class TestCreate:

    async def test_create_success(self, vehicle_repository, sample_vehicle_data):
        """
        Behavior:
                - Create a vehicle from a request-shaped payload.
                - The returned entity is the stored document, validated again.

        Importance:
                - The caller gets the store metadata (self link, etag, ts) it needs
                  for later remove() calls.

        Fixtures:
                - vehicle_repository: repository over a fresh SQLite store.
                - sample_vehicle_data: {"id": "1", "color": 2}.
        """
        created = await vehicle_repository.create(VehicleEntity.model_validate(sample_vehicle_data))

        assert created.id == "1"
        assert created.color is Color.BLUE
        assert created.self_link is not None
        assert created.rid is not None
        assert created.etag is not None
        assert created.ts is not None

    async def test_duplicate_id_is_conflict(self, vehicle_repository, created_vehicle):
        with pytest.raises(HttpError) as exc_info:
            await vehicle_repository.create(VehicleEntity(id=created_vehicle.id, color=Color.RED))

        assert exc_info.value.status_code == 409


@pytest.mark.asyncio
class TestFind:

    async def test_find_one_returns_stored_vehicle(self, vehicle_repository, created_vehicle):
        found = await vehicle_repository.find_one(created_vehicle.id)
        assert found == created_vehicle

    async def test_find_one_absent_is_none(self, vehicle_repository):
        assert await vehicle_repository.find_one("does-not-exist") is None

    async def test_find_all_empty_is_none(self, vehicle_repository):
        assert await vehicle_repository.find_all() is None

    async def test_find_all_returns_every_vehicle(self, vehicle_repository, make_vehicle):
        first = await make_vehicle(color=Color.GREEN)
        second = await make_vehicle(color=Color.YELLOW)

        found = await vehicle_repository.find_all()

        assert {v.id for v in found} == {first.id, second.id}

    async def test_invalid_stored_document_is_repository_error(self, vehicle_repository, store_context, document_client):
        """
        Behavior:
                - A document written behind the repository's back has an invalid color.
                - Reading it fails with the validation message, not a pydantic error.

        Importance:
                - Raw validation errors must not leak out of the data-access layer.
        """
        resources = await store_context.resolve(VEHICLE_COLLECTION_ID)
        await document_client.create_document(resources.collection_link, {"id": "bad", "color": "purple"})

        with pytest.raises(RepositoryError) as exc_info:
            await vehicle_repository.find_one("bad")
        assert exc_info.value.message == VALIDATION_FAILURE_MESSAGE
        assert exc_info.value.retry is False

        with pytest.raises(RepositoryError) as exc_info:
            await vehicle_repository.find_all()
        assert exc_info.value.message == VALIDATION_FAILURE_MESSAGE


@pytest.mark.asyncio
class TestRemove:

    async def test_remove_stored_vehicle(self, vehicle_repository, created_vehicle):
        await vehicle_repository.remove(created_vehicle)
        assert await vehicle_repository.find_one(created_vehicle.id) is None

    async def test_remove_without_self_link(self, vehicle_repository):
        with pytest.raises(RepositoryError) as exc_info:
            await vehicle_repository.remove(VehicleEntity(id="never-stored", color=Color.RED))

        assert exc_info.value.message == "The given type is not possible to remove."
        assert exc_info.value.retry is False

    async def test_remove_twice_is_repository_error(self, vehicle_repository, created_vehicle):
        await vehicle_repository.remove(created_vehicle)

        with pytest.raises(RepositoryError) as exc_info:
            await vehicle_repository.remove(created_vehicle)

        assert exc_info.value.retry is False

    async def test_remove_all_on_empty_collection(self, vehicle_repository):
        await vehicle_repository.remove_all()
        assert await vehicle_repository.find_all() is None


@pytest.fixture
def small_batch_client(async_engine) -> FlakyDocumentClient:
    """A store client deleting two documents per procedure run, with call counting."""
    inner = DocumentClient(create_sessionmaker(async_engine), procedure_batch_size=2)
    return FlakyDocumentClient(inner, method="none", failures=0)


@pytest.mark.asyncio
class TestRemoveAll:

    async def test_remove_all_loops_until_done(self, small_batch_client, settings):
        """
        Behavior:
                - Five vehicles, two deleted per procedure run.
                - remove_all() keeps executing the procedure until it reports no continuation.

        Importance:
                - A single procedure run is bounded; without the loop most documents would survive.
        """
        repository = build_vehicle_repository(StoreContext(small_batch_client, settings))
        for i in range(5):
            await repository.create(VehicleEntity(id=str(i), color=Color.RED))

        await repository.remove_all()

        assert small_batch_client.calls["execute_stored_procedure"] == 3
        assert await repository.find_all() is None

    async def test_iteration_cap(self, small_batch_client, settings):
        capped = settings.model_copy(update={"DATABASE_BULK_DELETE_MAX_ITERATIONS": 1})
        repository = build_vehicle_repository(StoreContext(small_batch_client, capped))
        for i in range(5):
            await repository.create(VehicleEntity(id=str(i), color=Color.RED))

        with pytest.raises(RepositoryError) as exc_info:
            await repository.remove_all()

        assert "did not finish" in exc_info.value.message
        assert small_batch_client.calls["execute_stored_procedure"] == 1


@pytest.mark.asyncio
class TestLazyInitialization:

    async def test_resources_resolved_on_first_use(self, vehicle_repository, store_context, document_client, settings):
        assert store_context.cached(VEHICLE_COLLECTION_ID) is None

        await vehicle_repository.find_one("1")

        resources = store_context.cached(VEHICLE_COLLECTION_ID)
        assert resources is not None
        assert resources.database["id"] == settings.DATABASE_ID
        assert resources.collection["id"] == VEHICLE_COLLECTION_ID
        assert resources.collection["offerThroughput"] == settings.DATABASE_COLLECTION_THROUGHPUT
        assert resources.bulk_delete_procedure["id"] == "bulkDelete"

    async def test_resources_are_created_once(self, store_context, document_client, settings):
        """
        Behavior:
                - Two repositories over the same collection, one of them on a fresh context.
                - Every operation resolves resources, but only the first resolution creates them.

        Importance:
                - Get-or-create must be idempotent across repositories and restarts.
        """
        first = build_vehicle_repository(store_context)
        second = build_vehicle_repository(StoreContext(document_client, settings))

        await first.find_all()
        await second.find_all()
        await first.create(VehicleEntity(id="1", color=Color.RED))

        databases = await document_client.query_databases(by_id(settings.DATABASE_ID))
        assert len(databases) == 1
        collections = await document_client.query_collections(databases[0]["_self"], by_id(VEHICLE_COLLECTION_ID))
        assert len(collections) == 1
        procedures = await document_client.query_stored_procedures(collections[0]["_self"], by_id("bulkDelete"))
        assert len(procedures) == 1

    async def test_resolution_is_cached(self, settings, document_client):
        client = FlakyDocumentClient(document_client, method="none", failures=0)
        repository = build_vehicle_repository(StoreContext(client, settings))

        await repository.find_one("1")
        await repository.find_one("2")

        assert client.calls["query_databases"] == 1
        assert client.calls["query_documents"] == 2

    async def test_each_collection_resolves_once(self, settings, document_client):
        client = FlakyDocumentClient(document_client, method="none", failures=0)
        context = StoreContext(client, settings)
        vehicles = build_vehicle_repository(context)
        archive = DocumentRepository(context, "vehicles-archive", VehicleEntity)

        await vehicles.find_one("1")
        await archive.find_one("1")
        await vehicles.find_one("2")

        assert client.calls["query_databases"] == 2
        assert context.cached(VEHICLE_COLLECTION_ID).collection_link != context.cached("vehicles-archive").collection_link

    async def test_prepare_runs_once(self, document_client, settings):
        runs = []

        async def prepare():
            runs.append(1)

        context = StoreContext(document_client, settings, prepare=prepare)
        await build_vehicle_repository(context).find_all()
        await DocumentRepository(context, "vehicles-archive", VehicleEntity).find_all()

        assert runs == [1]
