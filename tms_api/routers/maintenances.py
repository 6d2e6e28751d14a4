# tms_api/routers/maintenances.py
from typing import Optional

from fastapi import APIRouter, Depends
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import MaintenanceRecord
from tms_api.routers.deps import delete_or_404, get_or_404, update_or_404

router = APIRouter()


@router.get("/")
def list_maintenances(vehicleId: Optional[str] = None, db: Database = Depends(get_db)):
    filter_dict = {"vehicleId": vehicleId} if vehicleId else {}
    return store.list_documents(db, store.MAINTENANCES, filter_dict, sort=[("date", DESCENDING)])


@router.post("/", status_code=201)
def create_maintenance(record: MaintenanceRecord, db: Database = Depends(get_db)):
    get_or_404(db, store.VEHICLES, record.vehicleId, "Vehicle")
    record_id = store.create_document(db, store.MAINTENANCES, record)
    return store.get_document(db, store.MAINTENANCES, record_id)


@router.get("/{record_id}")
def get_maintenance(record_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.MAINTENANCES, record_id, "Maintenance record")


@router.put("/{record_id}")
def update_maintenance(record_id: str, record: MaintenanceRecord, db: Database = Depends(get_db)):
    return update_or_404(db, store.MAINTENANCES, record_id, record, "Maintenance record")


@router.delete("/{record_id}")
def delete_maintenance(record_id: str, db: Database = Depends(get_db)):
    return delete_or_404(db, store.MAINTENANCES, record_id, "Maintenance record")
