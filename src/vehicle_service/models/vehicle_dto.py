from pydantic import BaseModel, ConfigDict

from ..persistence.entities import Color, VehicleEntity


class VehicleDto(BaseModel):
    """
    External representation of a vehicle.

    `damaged` is only set by the detail lookup; when unset it is left out of the
    serialized response entirely (not sent as null).
    """

    model_config = ConfigDict(frozen=True)

    id: str
    color: Color
    damaged: bool | None = None

    @classmethod
    def from_entity(cls, entity: VehicleEntity, *, damaged: bool | None = None) -> "VehicleDto":
        return cls(id=entity.id, color=entity.color, damaged=damaged)

    def to_response(self) -> dict:
        return self.model_dump(mode="json", exclude_none=True)

    def __str__(self) -> str:
        if self.damaged is None:
            return f"{type(self).__name__}{{id: {self.id}, color: {int(self.color)}}}"
        return f"{type(self).__name__}{{id: {self.id}, color: {int(self.color)}, damaged: {self.damaged}}}"
