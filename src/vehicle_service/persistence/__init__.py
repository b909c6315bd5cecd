from .context import BackingResources, StoreContext
from .document_repository import DocumentRepository
from .entities import Color, StoredEntity, VehicleEntity
from .interfaces import Repository
from .vehicle_repository import VEHICLE_COLLECTION_ID, build_vehicle_repository

__all__ = [
    "BackingResources",
    "StoreContext",
    "DocumentRepository",
    "Repository",
    "Color",
    "StoredEntity",
    "VehicleEntity",
    "VEHICLE_COLLECTION_ID",
    "build_vehicle_repository",
]
