"""
Shared store context.

One `StoreContext` per process holds the document client, the settings the
repositories read, and the resolved backing resources per collection.

Resolution is not locked. Two tasks may resolve the same collection at the
same time; both get-or-create paths converge on the same resources (a losing
create is turned into a re-query), and the resolved `BackingResources` is
published with a single dict assignment, so readers see either nothing or a
complete set of handles.
"""

import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

from ..config.settings import Settings
from ..store.client import DocumentClient
from ..store.resources import (
    get_or_create_bulk_delete_procedure,
    get_or_create_collection,
    get_or_create_database,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class BackingResources:
    database: dict[str, Any]
    collection: dict[str, Any]
    bulk_delete_procedure: dict[str, Any]

    @property
    def collection_link(self) -> str:
        return self.collection["_self"]

    @property
    def bulk_delete_link(self) -> str:
        return self.bulk_delete_procedure["_self"]


class StoreContext:
    """
    Args:
        client: the document client all repositories share.
        settings: read for DATABASE_ID, throughput and retry options.
        prepare: optional one-time setup (e.g. schema creation) run before the
            first resolution; retried on the next call if it fails.
    """

    def __init__(
        self,
        client: DocumentClient,
        settings: Settings,
        *,
        prepare: Callable[[], Awaitable[None]] | None = None,
    ):
        self.client = client
        self.settings = settings
        self._prepare = prepare
        self._prepared = prepare is None
        self._resources: dict[str, BackingResources] = {}

    def cached(self, collection_id: str) -> BackingResources | None:
        return self._resources.get(collection_id)

    async def resolve(self, collection_id: str) -> BackingResources:
        """
        Return the backing resources for `collection_id`, creating them on first use.

        Order: database -> collection -> bulk-delete procedure. A failure at any
        step leaves the cache untouched, so the next call starts over.
        """
        resources = self._resources.get(collection_id)
        if resources is not None:
            return resources

        if not self._prepared:
            await self._prepare()
            self._prepared = True

        database = await get_or_create_database(self.client, self.settings.DATABASE_ID)
        collection = await get_or_create_collection(
            self.client,
            database["_self"],
            collection_id,
            offer_throughput=self.settings.DATABASE_COLLECTION_THROUGHPUT,
        )
        procedure = await get_or_create_bulk_delete_procedure(self.client, collection["_self"])

        resources = BackingResources(database=database, collection=collection, bulk_delete_procedure=procedure)
        self._resources[collection_id] = resources
        logger.info(
            "store.context.resources_resolved",
            extra={"collection_id": collection_id, "collection_link": resources.collection_link},
        )
        return resources
