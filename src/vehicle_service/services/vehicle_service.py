"""
Vehicle use cases.

Every method runs inside the service error boundary: an `HttpError` raised
below passes through unchanged, anything else is reported to the caller as
HttpError(503).
"""

import logging
from typing import Any

from ..exceptions.base import EntityValidationError, HttpError
from ..exceptions.mapper import service_error_boundary
from ..models.vehicle_dto import VehicleDto
from ..persistence.entities import VehicleEntity, transform_and_validate
from ..persistence.interfaces import Repository
from .backends.damage_service import DamageService

logger = logging.getLogger(__name__)


class VehicleService:
    def __init__(self, repository: Repository[VehicleEntity], damage_service: DamageService):
        self.repository = repository
        self.damage_service = damage_service

    async def get_detailed_vehicle(self, vehicle_id: str) -> VehicleDto:
        """
        Find the vehicle for `vehicle_id` and enrich it with its damage state.

        Raises:
            HttpError(404): no such vehicle.
            HttpError(503): store or damage backend failure.
        """
        async with service_error_boundary():
            vehicle = await self.repository.find_one(vehicle_id)
            if vehicle is None:
                logger.info("vehicle.not_found", extra={"vehicle_id": vehicle_id})
                raise HttpError(404)
            damaged = await self.damage_service.get_damage_state(vehicle.id)
            return VehicleDto.from_entity(vehicle, damaged=damaged)

    async def list_all_vehicles(self) -> list[VehicleDto]:
        """List all vehicles (without damage state)."""
        async with service_error_boundary():
            vehicles = await self.repository.find_all()
            if vehicles is None:
                return []
            return [VehicleDto.from_entity(v) for v in vehicles]

    async def create(self, body: Any) -> VehicleDto:
        """
        Validate `body` as a vehicle, persist it and return the stored vehicle.

        Raises:
            HttpError(400): body is not a valid vehicle.
            HttpError(409): a vehicle with this id already exists.
            HttpError(503): store failure.
        """
        async with service_error_boundary():
            try:
                vehicle = transform_and_validate(VehicleEntity, body)
            except EntityValidationError as exc:
                logger.info("vehicle.create.invalid", extra={"fields": exc.fields})
                raise HttpError(400) from exc
            created = await self.repository.create(vehicle)
            logger.info("vehicle.created", extra={"vehicle_id": created.id})
            return VehicleDto.from_entity(created)
