"""
Repository capability interface.

Services depend on this Protocol, not on `DocumentRepository`, so unit tests
can pass any object with the same coroutine methods.
"""

from typing import Protocol, TypeVar, runtime_checkable

T = TypeVar("T")


@runtime_checkable
class Repository(Protocol[T]):
    """
    CRUD contract for one entity type.

    All methods raise only classified errors: `RepositoryError` (with `retry`
    telling whether the failure was transient), `HttpError(409)` for duplicates,
    or `UnexpectedServiceError`.
    """

    async def create(self, entity: T) -> T:
        """Persist `entity` and return it as stored (metadata populated)."""
        ...

    async def find_one(self, entity_id: str) -> T | None:
        """Return the entity with `entity_id`, or None when absent."""
        ...

    async def find_all(self) -> list[T] | None:
        """Return every entity, or None when the collection is empty."""
        ...

    async def remove(self, entity: T) -> None:
        """Delete `entity` by its self link."""
        ...

    async def remove_all(self) -> None:
        ...
