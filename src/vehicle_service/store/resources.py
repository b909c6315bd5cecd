"""
Get-or-create helpers for the resources a repository needs.

Each helper queries the resource by id and creates it when the query comes back
empty. Two callers may race between query and create; the loser's create fails
with 409 and is resolved by querying again, so every caller ends up with the
same resource.
"""

import logging
from typing import Any, Awaitable, Callable

from .client import DocumentClient
from .errors import QueryError
from .procedures import BULK_DELETE_PROCEDURE
from .query import by_id

logger = logging.getLogger(__name__)


async def _get_or_create(
    kind: str,
    resource_id: str,
    query: Callable[[], Awaitable[list[dict[str, Any]]]],
    create: Callable[[], Awaitable[dict[str, Any]]],
) -> dict[str, Any]:
    found = await query()
    if found:
        return found[0]

    try:
        created = await create()
    except QueryError as exc:
        if exc.code != 409:
            raise
        logger.info("store.resource.create_conflict", extra={"kind": kind, "resource_id": resource_id})
        found = await query()
        if not found:
            raise
        return found[0]

    logger.info("store.resource.created", extra={"kind": kind, "resource_id": resource_id})
    return created


async def get_or_create_database(client: DocumentClient, database_id: str) -> dict[str, Any]:
    return await _get_or_create(
        "database",
        database_id,
        lambda: client.query_databases(by_id(database_id)),
        lambda: client.create_database({"id": database_id}),
    )


async def get_or_create_collection(
    client: DocumentClient, database_link: str, collection_id: str, *, offer_throughput: int = 400
) -> dict[str, Any]:
    return await _get_or_create(
        "collection",
        collection_id,
        lambda: client.query_collections(database_link, by_id(collection_id)),
        lambda: client.create_collection(database_link, {"id": collection_id}, offer_throughput=offer_throughput),
    )


async def get_or_create_bulk_delete_procedure(client: DocumentClient, collection_link: str) -> dict[str, Any]:
    procedure_id = BULK_DELETE_PROCEDURE["id"]
    return await _get_or_create(
        "stored_procedure",
        procedure_id,
        lambda: client.query_stored_procedures(collection_link, by_id(procedure_id)),
        lambda: client.create_stored_procedure(collection_link, dict(BULK_DELETE_PROCEDURE)),
    )
