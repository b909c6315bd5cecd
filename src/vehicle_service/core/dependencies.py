from fastapi import Request

from ..services.vehicle_service import VehicleService


def get_vehicle_service(request: Request) -> VehicleService:
    # Built once in the app lifespan and stored on app.state
    return request.app.state.vehicle_service
