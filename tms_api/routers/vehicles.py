# tms_api/routers/vehicles.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import Vehicle, VehicleStatus
from tms_api.routers.deps import delete_or_404, get_or_404, update_or_404
from tms_api.services import assignments

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/")
def list_vehicles(status: Optional[VehicleStatus] = None, db: Database = Depends(get_db)):
    filter_dict = {"status": status} if status else {}
    return store.list_documents(db, store.VEHICLES, filter_dict, sort=[("createdAt", DESCENDING)])


@router.post("/", status_code=201)
def create_vehicle(vehicle: Vehicle, db: Database = Depends(get_db)):
    if db[store.VEHICLES].count_documents({"licensePlate": vehicle.licensePlate}, limit=1):
        raise HTTPException(status_code=400, detail=f"Vehicle with plate '{vehicle.licensePlate}' already exists.")
    data = vehicle.model_dump()
    data.update({"driverId": None, "driverName": None})
    vehicle_id = store.create_document(db, store.VEHICLES, data)
    logger.info(f"Vehicle {vehicle.licensePlate} registered with id {vehicle_id}")
    return store.get_document(db, store.VEHICLES, vehicle_id)


@router.get("/{vehicle_id}")
def get_vehicle(vehicle_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.VEHICLES, vehicle_id, "Vehicle")


@router.put("/{vehicle_id}")
def update_vehicle(vehicle_id: str, vehicle: Vehicle, db: Database = Depends(get_db)):
    return update_or_404(db, store.VEHICLES, vehicle_id, vehicle, "Vehicle")


@router.delete("/{vehicle_id}")
def delete_vehicle(vehicle_id: str, db: Database = Depends(get_db)):
    return delete_or_404(db, store.VEHICLES, vehicle_id, "Vehicle")


@router.get("/{vehicle_id}/primary-assignment")
def primary_assignment(vehicle_id: str, db: Database = Depends(get_db)):
    get_or_404(db, store.VEHICLES, vehicle_id, "Vehicle")
    return {"assignment": assignments.get_vehicle_primary_assignment(db, vehicle_id)}
