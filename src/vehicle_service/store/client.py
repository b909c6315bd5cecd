"""
Async document-store client.

A small document database (databases → collections → documents / stored
procedures) persisted through SQLAlchemy. Resources are returned as plain dicts
carrying the store metadata (`id`, `_rid`, `_self`, `_etag`, `_ts`, ...), and
addressed by their `_self` links.

Every public method opens its own session and either commits or rolls back
before returning. Failures surface only as `QueryError` (see store.errors).
"""

import logging
import re
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Type

from sqlalchemy import delete, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from .errors import QueryError, store_error_handler
from .models import (
    CollectionRecord,
    DatabaseRecord,
    DocumentRecord,
    StoredProcedureRecord,
    now_ts,
)
from .procedures import get_server_script
from .query import QuerySpec, parse_query

logger = logging.getLogger(__name__)

_DATABASE_LINK = re.compile(r"^/?dbs/(?P<db>[^/]+)/?$")
_COLLECTION_LINK = re.compile(r"^/?dbs/(?P<db>[^/]+)/colls/(?P<coll>[^/]+)/?$")
_DOCUMENT_LINK = re.compile(r"^/?dbs/(?P<db>[^/]+)/colls/(?P<coll>[^/]+)/docs/(?P<doc>[^/]+)/?$")
_PROCEDURE_LINK = re.compile(r"^/?dbs/(?P<db>[^/]+)/colls/(?P<coll>[^/]+)/sprocs/(?P<sproc>[^/]+)/?$")

_NOT_FOUND = "Resource Not Found"


def _parse_link(pattern: re.Pattern, link: str | None, kind: str) -> re.Match:
    match = pattern.match(link or "")
    if match is None:
        raise QueryError(400, f"Invalid {kind} link: {link!r}")
    return match


def _split_document(document: dict[str, Any]) -> tuple[str, int | None, dict[str, Any]]:
    """Separate a user document into (id, ttl, body); store metadata keys are dropped."""
    document_id = document.get("id")
    if not isinstance(document_id, str) or not document_id:
        raise QueryError(400, "The input content is invalid because the required property 'id' is missing.")
    ttl = document.get("ttl")
    if ttl is not None and (isinstance(ttl, bool) or not isinstance(ttl, int)):
        raise QueryError(400, "The 'ttl' property must be an integer.")
    body = {k: v for k, v in document.items() if k not in ("id", "ttl") and not k.startswith("_")}
    return document_id, ttl, body


class _CollectionScope:
    """Handle given to server scripts; shares the caller's session (one transaction)."""

    def __init__(self, client: "DocumentClient", session: AsyncSession, collection: CollectionRecord, batch_size: int):
        self._client = client
        self._session = session
        self._collection = collection
        self.batch_size = batch_size

    async def query_documents(self, query: QuerySpec | str, limit: int | None = None) -> list[dict[str, Any]]:
        records = await self._client._select_documents(self._session, self._collection, query, limit)
        return [r.to_resource() for r in records]

    async def delete_document(self, document_link: str) -> None:
        await self._client._delete_document(self._session, document_link)


class DocumentClient:
    """
    Args:
        sessionmaker: factory for AsyncSession bound to the store engine.
        procedure_batch_size: maximum documents a server script processes per call.
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession], *, procedure_batch_size: int = 100):
        self._sessionmaker = sessionmaker
        self.procedure_batch_size = procedure_batch_size

    @asynccontextmanager
    async def _session(self, resource: str) -> AsyncIterator[AsyncSession]:
        async with self._sessionmaker() as session:
            async with store_error_handler(session, resource):
                yield session
                await session.commit()

    # =================================================================================================================
    # Generic helpers
    # =================================================================================================================

    async def _select(
        self,
        session: AsyncSession,
        model: Type[Any],
        query: QuerySpec | str,
        *criteria,
        limit: int | None = None,
    ) -> list[Any]:
        predicate = parse_query(query)
        stmt = select(model).where(*criteria).order_by(model.ts, model.id)

        # `id` is a column; any other attribute is evaluated on the materialized resource.
        if predicate is not None and predicate.attribute == "id":
            stmt = stmt.where(model.id == predicate.value)
            predicate = None

        if predicate is None:
            if limit is not None:
                stmt = stmt.limit(limit)
            return list((await session.scalars(stmt)).all())

        matched = [r for r in (await session.scalars(stmt)).all() if predicate.matches(r.to_resource())]
        return matched[:limit] if limit is not None else matched

    async def _get_database(self, session: AsyncSession, database_link: str) -> DatabaseRecord:
        match = _parse_link(_DATABASE_LINK, database_link, "database")
        record = await session.get(DatabaseRecord, match.group("db"))
        if record is None:
            raise QueryError(404, _NOT_FOUND)
        return record

    async def _get_collection(self, session: AsyncSession, collection_link: str) -> CollectionRecord:
        match = _parse_link(_COLLECTION_LINK, collection_link, "collection")
        record = await session.get(CollectionRecord, match.group("coll"))
        if record is None or record.database_rid != match.group("db"):
            raise QueryError(404, _NOT_FOUND)
        return record

    # =================================================================================================================
    # Databases
    # =================================================================================================================

    async def query_databases(self, query: QuerySpec | str) -> list[dict[str, Any]]:
        async with self._session("databases") as session:
            return [r.to_resource() for r in await self._select(session, DatabaseRecord, query)]

    async def create_database(self, body: dict[str, Any]) -> dict[str, Any]:
        database_id = body.get("id")
        if not database_id:
            raise QueryError(400, "Database id is required.")
        async with self._session("databases") as session:
            record = DatabaseRecord(id=database_id)
            session.add(record)
            await session.flush()
            logger.info("store.database.created", extra={"database_id": database_id, "rid": record.rid})
            return record.to_resource()

    # =================================================================================================================
    # Collections
    # =================================================================================================================

    async def query_collections(self, database_link: str, query: QuerySpec | str) -> list[dict[str, Any]]:
        async with self._session("collections") as session:
            database = await self._get_database(session, database_link)
            records = await self._select(session, CollectionRecord, query, CollectionRecord.database_rid == database.rid)
            return [r.to_resource() for r in records]

    async def create_collection(
        self, database_link: str, body: dict[str, Any], *, offer_throughput: int = 400
    ) -> dict[str, Any]:
        collection_id = body.get("id")
        if not collection_id:
            raise QueryError(400, "Collection id is required.")
        async with self._session("collections") as session:
            database = await self._get_database(session, database_link)
            record = CollectionRecord(id=collection_id, database_rid=database.rid, offer_throughput=offer_throughput)
            session.add(record)
            await session.flush()
            logger.info(
                "store.collection.created",
                extra={"collection_id": collection_id, "rid": record.rid, "offer_throughput": offer_throughput},
            )
            return record.to_resource()

    # =================================================================================================================
    # Stored procedures
    # =================================================================================================================

    async def query_stored_procedures(self, collection_link: str, query: QuerySpec | str) -> list[dict[str, Any]]:
        async with self._session("stored_procedures") as session:
            collection = await self._get_collection(session, collection_link)
            records = await self._select(
                session, StoredProcedureRecord, query, StoredProcedureRecord.collection_rid == collection.rid
            )
            return [r.to_resource() for r in records]

    async def create_stored_procedure(self, collection_link: str, body: dict[str, Any]) -> dict[str, Any]:
        procedure_id = body.get("id")
        script_name = body.get("serverScript")
        if not procedure_id or not script_name:
            raise QueryError(400, "Stored procedure requires 'id' and 'serverScript'.")
        get_server_script(script_name)

        async with self._session("stored_procedures") as session:
            collection = await self._get_collection(session, collection_link)
            record = StoredProcedureRecord(
                id=procedure_id,
                collection_rid=collection.rid,
                database_rid=collection.database_rid,
                server_script=script_name,
            )
            session.add(record)
            await session.flush()
            logger.info("store.procedure.created", extra={"procedure_id": procedure_id, "rid": record.rid})
            return record.to_resource()

    async def execute_stored_procedure(self, procedure_link: str, params: list[Any] | None = None) -> Any:
        match = _parse_link(_PROCEDURE_LINK, procedure_link, "stored procedure")
        async with self._session("stored_procedures") as session:
            record = await session.get(StoredProcedureRecord, match.group("sproc"))
            if record is None or record.collection_rid != match.group("coll"):
                raise QueryError(404, _NOT_FOUND)
            collection = await session.get(CollectionRecord, record.collection_rid)
            if collection is None:
                raise QueryError(404, _NOT_FOUND)

            script = get_server_script(record.server_script)
            scope = _CollectionScope(self, session, collection, self.procedure_batch_size)
            return await script(scope, *(params or []))

    # =================================================================================================================
    # Documents
    # =================================================================================================================

    def _live_documents(self, collection: CollectionRecord) -> list:
        now = now_ts()
        return [
            DocumentRecord.collection_rid == collection.rid,
            or_(
                DocumentRecord.ttl.is_(None),
                DocumentRecord.ttl < 0,
                DocumentRecord.ts + DocumentRecord.ttl > now,
            ),
        ]

    async def _select_documents(
        self, session: AsyncSession, collection: CollectionRecord, query: QuerySpec | str, limit: int | None = None
    ) -> list[DocumentRecord]:
        return await self._select(session, DocumentRecord, query, *self._live_documents(collection), limit=limit)

    async def _delete_document(self, session: AsyncSession, document_link: str) -> None:
        match = _parse_link(_DOCUMENT_LINK, document_link, "document")
        record = await session.get(DocumentRecord, match.group("doc"))
        if record is None or record.collection_rid != match.group("coll") or record.is_expired():
            raise QueryError(404, _NOT_FOUND)
        await session.delete(record)
        await session.flush()

    async def create_document(self, collection_link: str, document: dict[str, Any]) -> dict[str, Any]:
        document_id, ttl, body = _split_document(document)
        async with self._session("documents") as session:
            collection = await self._get_collection(session, collection_link)

            # An expired document no longer exists from the caller's point of view.
            await session.execute(
                delete(DocumentRecord).where(
                    DocumentRecord.collection_rid == collection.rid,
                    DocumentRecord.id == document_id,
                    DocumentRecord.ttl.is_not(None),
                    DocumentRecord.ttl >= 0,
                    DocumentRecord.ts + DocumentRecord.ttl <= now_ts(),
                )
            )

            record = DocumentRecord(
                id=document_id,
                collection_rid=collection.rid,
                database_rid=collection.database_rid,
                body=body,
                ttl=ttl,
            )
            session.add(record)
            await session.flush()
            logger.debug("store.document.created", extra={"collection_id": collection.id, "document_id": document_id})
            return record.to_resource()

    async def query_documents(self, collection_link: str, query: QuerySpec | str) -> list[dict[str, Any]]:
        async with self._session("documents") as session:
            collection = await self._get_collection(session, collection_link)
            return [r.to_resource() for r in await self._select_documents(session, collection, query)]

    async def delete_document(self, document_link: str) -> None:
        async with self._session("documents") as session:
            await self._delete_document(session, document_link)
