import pytest

from vehicle_service.store import client as client_module
from vehicle_service.store.client import DocumentClient
from vehicle_service.store.errors import CONNECTION_RESET, QueryError
from vehicle_service.store.models import now_ts
from vehicle_service.store.procedures import BULK_DELETE_PROCEDURE
from vehicle_service.store.query import SELECT_ALL, QuerySpec, by_id
from vehicle_service.store.session import create_engine, create_schema, create_sessionmaker

from ..test_fixtures.settings_fixtures import make_settings


@pytest.fixture
async def collection(document_client: DocumentClient) -> dict:
    database = await document_client.create_database({"id": "db"})
    return await document_client.create_collection(database["_self"], {"id": "things"}, offer_throughput=1000)


@pytest.mark.asyncio
class TestDatabasesAndCollections:

    async def test_create_database_returns_metadata(self, document_client):
        database = await document_client.create_database({"id": "db"})

        assert database["id"] == "db"
        assert database["_self"] == f"dbs/{database['_rid']}/"
        assert database["_etag"]
        assert isinstance(database["_ts"], int)

    async def test_duplicate_database_is_conflict(self, document_client):
        await document_client.create_database({"id": "db"})

        with pytest.raises(QueryError) as exc_info:
            await document_client.create_database({"id": "db"})

        assert exc_info.value.code == 409

    async def test_query_databases_by_id(self, document_client):
        await document_client.create_database({"id": "a"})
        await document_client.create_database({"id": "b"})

        found = await document_client.query_databases(by_id("b"))

        assert [d["id"] for d in found] == ["b"]

    async def test_collection_keeps_offer_throughput(self, collection):
        assert collection["id"] == "things"
        assert collection["offerThroughput"] == 1000
        assert "/colls/" in collection["_self"]

    async def test_same_collection_id_in_other_database_is_allowed(self, document_client, collection):
        other = await document_client.create_database({"id": "other"})
        created = await document_client.create_collection(other["_self"], {"id": "things"})
        assert created["_rid"] != collection["_rid"]

    async def test_malformed_link_is_bad_request(self, document_client):
        with pytest.raises(QueryError) as exc_info:
            await document_client.query_collections("not-a-link", by_id("x"))
        assert exc_info.value.code == 400

    async def test_missing_database_is_not_found(self, document_client):
        with pytest.raises(QueryError) as exc_info:
            await document_client.query_collections("dbs/0000000000000000/", by_id("x"))
        assert exc_info.value.code == 404
        assert exc_info.value.body == "Resource Not Found"


@pytest.mark.asyncio
class TestDocuments:

    async def test_create_and_query_document(self, document_client, collection):
        created = await document_client.create_document(collection["_self"], {"id": "1", "color": 2})

        assert created["id"] == "1"
        assert created["color"] == 2
        assert created["_self"].startswith(collection["_self"] + "docs/")
        assert created["_attachments"] == "attachments/"
        assert "ttl" not in created

        found = await document_client.query_documents(collection["_self"], by_id("1"))
        assert found == [created]

    async def test_store_metadata_in_input_is_ignored(self, document_client, collection):
        created = await document_client.create_document(
            collection["_self"], {"id": "1", "color": 0, "_self": "forged", "_rid": "forged"}
        )
        assert created["_self"] != "forged"
        assert created["_rid"] != "forged"

    async def test_document_without_id_is_bad_request(self, document_client, collection):
        with pytest.raises(QueryError) as exc_info:
            await document_client.create_document(collection["_self"], {"color": 1})
        assert exc_info.value.code == 400

    async def test_duplicate_document_is_conflict(self, document_client, collection):
        await document_client.create_document(collection["_self"], {"id": "1", "color": 2})

        with pytest.raises(QueryError) as exc_info:
            await document_client.create_document(collection["_self"], {"id": "1", "color": 3})

        assert exc_info.value.code == 409

    async def test_query_by_other_attribute(self, document_client, collection):
        await document_client.create_document(collection["_self"], {"id": "1", "color": 2})
        await document_client.create_document(collection["_self"], {"id": "2", "color": 3})

        found = await document_client.query_documents(
            collection["_self"],
            QuerySpec("SELECT * FROM root r WHERE r.color=@color", [{"name": "@color", "value": 3}]),
        )

        assert [d["id"] for d in found] == ["2"]

    async def test_delete_document(self, document_client, collection):
        created = await document_client.create_document(collection["_self"], {"id": "1", "color": 2})

        await document_client.delete_document(created["_self"])

        assert await document_client.query_documents(collection["_self"], SELECT_ALL) == []

    async def test_delete_missing_document_is_not_found(self, document_client, collection):
        created = await document_client.create_document(collection["_self"], {"id": "1", "color": 2})
        await document_client.delete_document(created["_self"])

        with pytest.raises(QueryError) as exc_info:
            await document_client.delete_document(created["_self"])

        assert exc_info.value.code == 404


@pytest.mark.asyncio
class TestTimeToLive:

    async def test_expired_documents_are_invisible(self, document_client, collection, monkeypatch):
        """
        Behavior:
                - Store one document with a ttl and one without.
                - Move the clock past the ttl.

        Importance:
                - Expiry is applied on read; an expired document must not be returned
                  even though its row still exists.
        """
        await document_client.create_document(collection["_self"], {"id": "short", "color": 1, "ttl": 10})
        await document_client.create_document(collection["_self"], {"id": "forever", "color": 1})

        later = now_ts() + 100
        monkeypatch.setattr(client_module, "now_ts", lambda: later)

        found = await document_client.query_documents(collection["_self"], SELECT_ALL)
        assert [d["id"] for d in found] == ["forever"]

    async def test_expired_document_id_can_be_reused(self, document_client, collection, monkeypatch):
        await document_client.create_document(collection["_self"], {"id": "1", "color": 1, "ttl": 10})

        later = now_ts() + 100
        monkeypatch.setattr(client_module, "now_ts", lambda: later)

        created = await document_client.create_document(collection["_self"], {"id": "1", "color": 3})
        assert created["color"] == 3

    async def test_ttl_is_returned_as_metadata(self, document_client, collection):
        created = await document_client.create_document(collection["_self"], {"id": "1", "color": 1, "ttl": 60})
        assert created["ttl"] == 60

    async def test_non_integer_ttl_is_bad_request(self, document_client, collection):
        with pytest.raises(QueryError) as exc_info:
            await document_client.create_document(collection["_self"], {"id": "1", "color": 1, "ttl": "soon"})
        assert exc_info.value.code == 400


@pytest.mark.asyncio
class TestStoredProcedures:

    async def test_unknown_server_script_is_rejected(self, document_client, collection):
        with pytest.raises(QueryError) as exc_info:
            await document_client.create_stored_procedure(collection["_self"], {"id": "x", "serverScript": "nope"})
        assert exc_info.value.code == 400

    async def test_bulk_delete_runs_in_batches(self, async_engine, collection):
        """
        Behavior:
                - Five documents, batch size two.
                - Each execution deletes at most two and reports whether more remain.

        Importance:
                - remove_all() relies on `continuation` to know when to stop looping.
        """
        client = DocumentClient(create_sessionmaker(async_engine), procedure_batch_size=2)
        procedure = await client.create_stored_procedure(collection["_self"], dict(BULK_DELETE_PROCEDURE))
        for i in range(5):
            await client.create_document(collection["_self"], {"id": str(i), "color": 0})

        results = [await client.execute_stored_procedure(procedure["_self"], [SELECT_ALL]) for _ in range(3)]

        assert results == [
            {"deleted": 2, "continuation": True},
            {"deleted": 2, "continuation": True},
            {"deleted": 1, "continuation": False},
        ]
        assert await client.query_documents(collection["_self"], SELECT_ALL) == []

    async def test_bulk_delete_requires_query(self, document_client, collection):
        procedure = await document_client.create_stored_procedure(collection["_self"], dict(BULK_DELETE_PROCEDURE))

        with pytest.raises(QueryError) as exc_info:
            await document_client.execute_stored_procedure(procedure["_self"], [])

        assert exc_info.value.code == 400

    async def test_missing_procedure_is_not_found(self, document_client, collection):
        link = f"{collection['_self']}sprocs/0000000000000000/"
        with pytest.raises(QueryError) as exc_info:
            await document_client.execute_stored_procedure(link, [SELECT_ALL])
        assert exc_info.value.code == 404


@pytest.mark.asyncio
async def test_unreachable_database_is_connection_reset(tmp_path):
    """
    A SQLite file in a directory that does not exist cannot be opened; schema
    creation reports it like a dropped connection.
    """
    engine = create_engine(make_settings(tmp_path / "missing" / "dir"))
    try:
        with pytest.raises(QueryError) as exc_info:
            await create_schema(engine)
        assert exc_info.value.code == CONNECTION_RESET
    finally:
        await engine.dispose()
