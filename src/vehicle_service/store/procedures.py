"""
Server-side procedures.

A stored procedure record only names a script (`server_script`); the script
itself is a coroutine registered here and executed by the store client inside
a single transaction scoped to the procedure's collection.
"""

import logging
from typing import Any, Awaitable, Callable, Protocol

from .errors import QueryError
from .query import QuerySpec

logger = logging.getLogger(__name__)


class CollectionScope(Protocol):
    """What a running procedure may do with its collection."""

    batch_size: int

    async def query_documents(self, query: QuerySpec | str, limit: int | None = None) -> list[dict[str, Any]]:
        ...

    async def delete_document(self, document_link: str) -> None:
        ...


ServerScript = Callable[..., Awaitable[dict[str, Any]]]

_SCRIPTS: dict[str, ServerScript] = {}


def server_script(name: str) -> Callable[[ServerScript], ServerScript]:
    def register(func: ServerScript) -> ServerScript:
        _SCRIPTS[name] = func
        return func

    return register


def get_server_script(name: str) -> ServerScript:
    try:
        return _SCRIPTS[name]
    except KeyError:
        raise QueryError(400, f"Unknown server script: {name!r}") from None


@server_script("bulkDeleteAll")
async def bulk_delete_all(scope: CollectionScope, query: str | None = None) -> dict[str, Any]:
    """
    Delete the documents matching `query`, at most `scope.batch_size` per invocation.

    Returns:
        {"deleted": <count>, "continuation": <True if matching documents remain>}

    Callers loop until `continuation` is False.
    """
    if not query:
        raise QueryError(400, "The query is undefined or null.")

    # One extra row tells us whether another round trip is needed.
    documents = await scope.query_documents(query, limit=scope.batch_size + 1)
    batch = documents[: scope.batch_size]

    for document in batch:
        await scope.delete_document(document["_self"])

    response = {"deleted": len(batch), "continuation": len(documents) > len(batch)}
    logger.debug("store.procedure.bulk_delete", extra=response)
    return response


# Definition used when the procedure is created in a collection.
BULK_DELETE_PROCEDURE = {
    "id": "bulkDelete",
    "serverScript": "bulkDeleteAll",
}
