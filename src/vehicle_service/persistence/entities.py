"""
Stored entities.

An entity is the domain fields plus the metadata the document store manages
(`_self`, `_rid`, `_etag`, `_ts`, `_attachments`, `ttl`). Metadata is optional:
it is absent on an entity built from user input and present on one read back
from the store.
"""

from enum import IntEnum
from typing import Any, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, StrictStr, ValidationError, field_validator

from ..exceptions.base import EntityValidationError


class Color(IntEnum):
    RED = 0
    YELLOW = 1
    BLUE = 2
    GREEN = 3


class StoredEntity(BaseModel):
    """Base for entities persisted in a collection."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore", frozen=True)

    id: StrictStr = Field(min_length=1)

    self_link: str | None = Field(default=None, alias="_self")
    rid: str | None = Field(default=None, alias="_rid")
    etag: str | None = Field(default=None, alias="_etag")
    ts: int | None = Field(default=None, alias="_ts")
    attachments: str | None = Field(default=None, alias="_attachments")
    ttl: int | None = None

    def to_document(self) -> dict[str, Any]:
        """The document sent to the store: aliased keys, unset metadata omitted."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)

    def __str__(self) -> str:
        return f"{type(self).__name__}{{id: {self.id}}}"


class VehicleEntity(StoredEntity):
    color: Color

    @field_validator("color", mode="before")
    def require_int_color(cls, v: Any) -> Any:
        # lax mode would coerce "1", 1.0 and True into Color.YELLOW
        if not isinstance(v, int) or isinstance(v, bool):
            raise ValueError(f"color must be an integer Color value, got {type(v).__name__}")
        return v


EntityT = TypeVar("EntityT", bound=StoredEntity)


def transform_and_validate(entity_type: Type[EntityT], raw: Any) -> EntityT:
    """
    Build and validate an `entity_type` from an untrusted mapping.

    Raises:
        EntityValidationError: with one entry per failing field.
    """
    if not isinstance(raw, dict):
        raise EntityValidationError(
            f"Expected an object for {entity_type.__name__}, got {type(raw).__name__}.",
            errors=[{"field": None, "message": "Input must be an object."}],
        )
    try:
        return entity_type.model_validate(raw)
    except ValidationError as exc:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]) or None, "message": err["msg"]}
            for err in exc.errors()
        ]
        raise EntityValidationError(f"Invalid {entity_type.__name__}.", errors=errors) from exc


def transform_and_validate_many(entity_type: Type[EntityT], raws: list[Any]) -> list[EntityT]:
    """
    Validate every item; all failures are reported together in an ExceptionGroup.
    """
    entities: list[EntityT] = []
    failures: list[EntityValidationError] = []
    for raw in raws:
        try:
            entities.append(transform_and_validate(entity_type, raw))
        except EntityValidationError as exc:
            failures.append(exc)
    if failures:
        raise ExceptionGroup(f"{len(failures)} invalid {entity_type.__name__} document(s)", failures)
    return entities
