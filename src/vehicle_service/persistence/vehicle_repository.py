from .context import StoreContext
from .document_repository import DocumentRepository
from .entities import VehicleEntity

VEHICLE_COLLECTION_ID = "vehicles"


def build_vehicle_repository(context: StoreContext) -> DocumentRepository[VehicleEntity]:
    """Repository over the `vehicles` collection."""
    return DocumentRepository(context, VEHICLE_COLLECTION_ID, VehicleEntity)
