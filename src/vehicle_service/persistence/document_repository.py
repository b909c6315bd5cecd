"""
Generic document repository with lazy resource initialization and bounded retry.

A `DocumentRepository` is configured with a collection id and an entity type;
there is no subclass per entity. Every public operation:

  1. resolves the backing resources (database, collection, bulk-delete procedure)
     through the shared `StoreContext` the first time they are needed;
  2. runs inside the repository error boundary, so only classified errors escape;
  3. is retried while the failure is classified as transient (`retry=True`), up to
     `max_retries` attempts in total. After that a terminal
     `RepositoryError("Maximum database query retries.")` is raised.
"""

import asyncio
import logging
import time
from typing import Any, Awaitable, Callable, Generic, Type, TypeVar

from ..exceptions.base import RepositoryError
from ..exceptions.mapper import repository_error_boundary
from ..store.query import SELECT_ALL, by_id
from .context import BackingResources, StoreContext
from .entities import StoredEntity, transform_and_validate, transform_and_validate_many

logger = logging.getLogger(__name__)

EntityT = TypeVar("EntityT", bound=StoredEntity)
R = TypeVar("R")

RETRIES_EXHAUSTED_MESSAGE = "Maximum database query retries."


class DocumentRepository(Generic[EntityT]):
    """
    Args:
        context: shared store context (client + settings + resource cache).
        collection_id: the collection this repository reads and writes.
        entity_type: pydantic model every stored document is validated into.
        max_retries: total attempts per operation (defaults to DATABASE_MAX_QUERY_RETRIES).
        retry_delay: seconds to wait between attempts (defaults to DATABASE_RETRY_DELAY_SECONDS).
    """

    def __init__(
        self,
        context: StoreContext,
        collection_id: str,
        entity_type: Type[EntityT],
        *,
        max_retries: int | None = None,
        retry_delay: float | None = None,
    ):
        settings = context.settings
        self.context = context
        self.collection_id = collection_id
        self.entity_type = entity_type
        self.max_retries = max_retries if max_retries is not None else settings.DATABASE_MAX_QUERY_RETRIES
        self.retry_delay = retry_delay if retry_delay is not None else settings.DATABASE_RETRY_DELAY_SECONDS
        self.bulk_delete_max_iterations = settings.DATABASE_BULK_DELETE_MAX_ITERATIONS

    @property
    def client(self):
        return self.context.client

    # =================================================================================================================
    # Public operations
    # =================================================================================================================

    async def create(self, entity: EntityT) -> EntityT:
        return await self._retry("create", self._create, entity)

    async def find_one(self, entity_id: str) -> EntityT | None:
        return await self._retry("find_one", self._find_one, entity_id)

    async def find_all(self) -> list[EntityT] | None:
        return await self._retry("find_all", self._find_all)

    async def remove(self, entity: EntityT) -> None:
        return await self._retry("remove", self._remove, entity)

    async def remove_all(self) -> None:
        return await self._retry("remove_all", self._remove_all)

    # =================================================================================================================
    # Retry + lazy init
    # =================================================================================================================

    async def _retry(self, operation: str, method: Callable[..., Awaitable[R]], *args: Any) -> R:
        for attempt in range(1, self.max_retries + 1):
            try:
                return await method(*args)
            except RepositoryError as exc:
                if exc.retry is not True:
                    raise
                logger.warning(
                    "repo.retry",
                    extra={
                        "collection": self.collection_id,
                        "operation": operation,
                        "attempt": attempt,
                        "max_retries": self.max_retries,
                    },
                )
                if self.retry_delay and attempt < self.max_retries:
                    await asyncio.sleep(self.retry_delay)

        logger.error(
            "repo.retries_exhausted",
            extra={"collection": self.collection_id, "operation": operation, "max_retries": self.max_retries},
        )
        raise RepositoryError(RETRIES_EXHAUSTED_MESSAGE)

    async def _evaluate_init(self) -> BackingResources:
        return await self.context.resolve(self.collection_id)

    # =================================================================================================================
    # Single attempts
    # =================================================================================================================

    async def _create(self, entity: EntityT) -> EntityT:
        logger.debug("repo.create.start", extra={"collection": self.collection_id, "id": entity.id})
        start = time.perf_counter()

        async with repository_error_boundary():
            resources = await self._evaluate_init()
            stored = await self.client.create_document(resources.collection_link, entity.to_document())
            created = transform_and_validate(self.entity_type, stored)

            logger.info(
                "repo.create.success",
                extra={
                    "collection": self.collection_id,
                    "id": created.id,
                    "duration_ms": int((time.perf_counter() - start) * 1000),
                },
            )
            return created

    async def _find_one(self, entity_id: str) -> EntityT | None:
        async with repository_error_boundary():
            resources = await self._evaluate_init()
            results = await self.client.query_documents(resources.collection_link, by_id(entity_id))
            if not results:
                logger.debug("repo.find_one.miss", extra={"collection": self.collection_id, "id": entity_id})
                return None
            return transform_and_validate(self.entity_type, results[0])

    async def _find_all(self) -> list[EntityT] | None:
        async with repository_error_boundary():
            resources = await self._evaluate_init()
            results = await self.client.query_documents(resources.collection_link, "SELECT * FROM root r")
            if not results:
                return None
            return transform_and_validate_many(self.entity_type, results)

    async def _remove(self, entity: EntityT) -> None:
        async with repository_error_boundary():
            await self._evaluate_init()
            document_link = getattr(entity, "self_link", None)
            if document_link is None:
                raise TypeError("The given type is not possible to remove.")
            await self.client.delete_document(document_link)
            logger.info("repo.remove.success", extra={"collection": self.collection_id, "id": entity.id})

    async def _remove_all(self) -> None:
        async with repository_error_boundary():
            resources = await self._evaluate_init()
            iterations = 0
            deleted = 0
            while True:
                result = await self.client.execute_stored_procedure(resources.bulk_delete_link, [SELECT_ALL])
                iterations += 1
                deleted += result.get("deleted", 0)
                if not result.get("continuation"):
                    break
                if self.bulk_delete_max_iterations and iterations >= self.bulk_delete_max_iterations:
                    raise RepositoryError(
                        f"Bulk delete did not finish within {self.bulk_delete_max_iterations} iterations."
                    )

            logger.info(
                "repo.remove_all.success",
                extra={"collection": self.collection_id, "deleted": deleted, "iterations": iterations},
            )
