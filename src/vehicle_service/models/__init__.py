from .vehicle_dto import VehicleDto

__all__ = ["VehicleDto"]
