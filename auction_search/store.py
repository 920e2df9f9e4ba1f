"""Vehicle persistence as seen by the search pipeline."""
from typing import List, Optional, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import crud
from .models import Vehicle
from .schemas import StructuredFilters, VehicleCreate


class VehicleStore(Protocol):
    def query_by_filters(self, filters: StructuredFilters, source: Optional[str] = None,
                         external_id: Optional[str] = None) -> list:
        ...

    def find_by_external_id(self, source: str, external_id: str):
        ...

    def insert_vehicle(self, record: VehicleCreate):
        ...

    def get_or_insert(self, record: VehicleCreate):
        ...

    def add_if_absent(self, record: VehicleCreate) -> bool:
        ...


class SqlVehicleStore:
    """VehicleStore over a SQLAlchemy session."""

    def __init__(self, db: Session):
        self.db = db

    def query_by_filters(self, filters: StructuredFilters, source: Optional[str] = None,
                         external_id: Optional[str] = None) -> List[Vehicle]:
        try:
            return crud.list_vehicles_by_filters(self.db, filters, source=source, external_id=external_id)
        except SQLAlchemyError:
            # leave the session usable for the caller's next write
            self.db.rollback()
            raise

    def find_by_external_id(self, source: str, external_id: str) -> Optional[Vehicle]:
        return crud.get_vehicle_by_external_id(self.db, source, external_id)

    def insert_vehicle(self, record: VehicleCreate) -> Vehicle:
        return crud.create_vehicle(self.db, record)

    def get_or_insert(self, record: VehicleCreate) -> Vehicle:
        existing = self.find_by_external_id(record.source, record.external_id)
        if existing is not None:
            return existing
        return self.insert_vehicle(record)

    def add_if_absent(self, record: VehicleCreate) -> bool:
        """True only when this call stored a new row."""
        if self.find_by_external_id(record.source, record.external_id) is not None:
            return False
        return crud.insert_vehicle(self.db, record)[1]
