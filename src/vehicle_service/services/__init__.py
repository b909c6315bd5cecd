from .vehicle_service import VehicleService

__all__ = ["VehicleService"]
