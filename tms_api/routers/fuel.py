# tms_api/routers/fuel.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.core.pricing import fuel_efficiency, fuel_summary
from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import FuelLog
from tms_api.routers.deps import delete_or_404, get_or_404, update_or_404
from tms_api.services import storage

logger = logging.getLogger(__name__)
router = APIRouter()


def _previous_full_tank_odometer(db: Database, vehicle_id: str) -> Optional[float]:
    last = db[store.FUEL_LOGS].find_one(
        {"vehicleId": vehicle_id, "fullTank": True},
        sort=[("odometer", DESCENDING)],
    )
    return last.get("odometer") if last else None


@router.get("/", summary="Fuel logs, newest first, with totals")
def list_fuel_logs(vehicleId: Optional[str] = None, db: Database = Depends(get_db)):
    filter_dict = {"vehicleId": vehicleId} if vehicleId else {}
    logs = store.list_documents(db, store.FUEL_LOGS, filter_dict, sort=[("date", DESCENDING)])
    return {"items": logs, "summary": fuel_summary(logs)}


@router.post("/", status_code=201)
def create_fuel_log(log: FuelLog, db: Database = Depends(get_db)):
    get_or_404(db, store.VEHICLES, log.vehicleId, "Vehicle")

    efficiency = None
    if log.fullTank:
        efficiency = fuel_efficiency(log.odometer, log.liters, _previous_full_tank_odometer(db, log.vehicleId))

    data = log.model_dump()
    data.update({"efficiency": efficiency, "imageUrl": None})
    log_id = store.create_document(db, store.FUEL_LOGS, data)

    if log.odometer > 0:
        store.update_document(db, store.VEHICLES, log.vehicleId, {"odometer": log.odometer})
    logger.info(f"Fuel log {log_id} recorded for vehicle {log.vehicleId} (efficiency={efficiency})")
    return store.get_document(db, store.FUEL_LOGS, log_id)


@router.post("/{log_id}/receipt", summary="Attach a receipt photo to a fuel log")
async def upload_receipt(log_id: str, file: UploadFile = File(...), db: Database = Depends(get_db)):
    get_or_404(db, store.FUEL_LOGS, log_id, "Fuel log")
    if file.content_type and not file.content_type.startswith("image/"):
        raise HTTPException(status_code=400, detail="Receipt must be an image.")
    content = await file.read()
    try:
        url = storage.save_upload("fuel", file.filename or "receipt.jpg", content, file.content_type)
    except storage.StorageError as e:
        raise HTTPException(status_code=500, detail=f"Failed to store receipt: {e}")
    store.update_document(db, store.FUEL_LOGS, log_id, {"imageUrl": url})
    return store.get_document(db, store.FUEL_LOGS, log_id)


@router.get("/{log_id}")
def get_fuel_log(log_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.FUEL_LOGS, log_id, "Fuel log")


@router.put("/{log_id}", summary="Edit a fuel log; efficiency is kept as recorded")
def update_fuel_log(log_id: str, log: FuelLog, db: Database = Depends(get_db)):
    return update_or_404(db, store.FUEL_LOGS, log_id, log, "Fuel log")


@router.delete("/{log_id}")
def delete_fuel_log(log_id: str, db: Database = Depends(get_db)):
    return delete_or_404(db, store.FUEL_LOGS, log_id, "Fuel log")
