import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from ...core.dependencies import get_vehicle_service
from ...exceptions.base import HttpError
from ...services.vehicle_service import VehicleService
from .timeout import TimeoutGuardedRoute

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/vehicles", tags=["vehicles"], route_class=TimeoutGuardedRoute)


@router.get("")
async def list_vehicles(service: VehicleService = Depends(get_vehicle_service)) -> JSONResponse:
    vehicles = await service.list_all_vehicles()
    return JSONResponse([v.to_response() for v in vehicles])


@router.get("/{vehicle_id}")
async def get_vehicle(vehicle_id: str, service: VehicleService = Depends(get_vehicle_service)) -> JSONResponse:
    if not vehicle_id.strip():
        raise HttpError(404)
    vehicle = await service.get_detailed_vehicle(vehicle_id)
    return JSONResponse(vehicle.to_response())


@router.post("")
async def create_vehicle(request: Request, service: VehicleService = Depends(get_vehicle_service)) -> JSONResponse:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.info("vehicle.create.malformed_body", extra={"content_type": request.headers.get("content-type")})
        raise HttpError(400) from None
    vehicle = await service.create(body)
    return JSONResponse(vehicle.to_response())
