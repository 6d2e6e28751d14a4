# tms_api/routers/drivers.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from tms_api.core.licensing import check_license_compliance
from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import (AssignVehicleRequest, Driver, DriverLinkRequest, DriverStatus, LicenseCheckRequest,
                            SetPrimaryRequest, UnassignVehicleRequest)
from tms_api.routers.deps import delete_or_404, get_or_404, update_or_404
from tms_api.services import assignments

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/")
def list_drivers(
    status: Optional[DriverStatus] = None,
    contracted: Optional[bool] = None,
    db: Database = Depends(get_db),
):
    filter_dict = {}
    if status:
        filter_dict["status"] = status
    if contracted is not None:
        filter_dict["isAvailableForContracted"] = contracted
    return store.list_documents(db, store.DRIVERS, filter_dict, sort=[("display_name", ASCENDING)])


@router.post("/", status_code=201)
def create_driver(driver: Driver, db: Database = Depends(get_db)):
    data = driver.model_dump()
    data["licenseClasses"] = [c.strip().upper() for c in driver.licenseClasses]
    data["assignedVehicleId"] = None
    driver_id = store.create_document(db, store.DRIVERS, data)
    logger.info(f"Driver '{driver.display_name}' registered with id {driver_id}")
    return store.get_document(db, store.DRIVERS, driver_id)


@router.get("/{driver_id}")
def get_driver(driver_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.DRIVERS, driver_id, "Driver")


@router.put("/{driver_id}")
def update_driver(driver_id: str, driver: Driver, db: Database = Depends(get_db)):
    changes = driver.model_dump()
    changes["licenseClasses"] = [c.strip().upper() for c in driver.licenseClasses]
    return update_or_404(db, store.DRIVERS, driver_id, changes, "Driver")


@router.delete("/{driver_id}")
def delete_driver(driver_id: str, db: Database = Depends(get_db)):
    return delete_or_404(db, store.DRIVERS, driver_id, "Driver")


# --- Vehicle assignments ---

@router.post("/{driver_id}/assign-vehicle", summary="Assign a vehicle as the driver's primary vehicle")
def assign_vehicle(driver_id: str, request: AssignVehicleRequest, db: Database = Depends(get_db)):
    driver = get_or_404(db, store.DRIVERS, driver_id, "Driver")
    vehicle = get_or_404(db, store.VEHICLES, request.vehicleId, "Vehicle")
    assignment_id = assignments.assign_vehicle(
        db, driver, vehicle, request.assignedBy,
        start_odometer=request.startOdometer, notes=request.notes, keep_existing=request.keepExisting,
    )
    return {"assignmentId": assignment_id}


@router.post("/{driver_id}/primary-vehicle")
def set_primary_vehicle(driver_id: str, request: SetPrimaryRequest, db: Database = Depends(get_db)):
    get_or_404(db, store.DRIVERS, driver_id, "Driver")
    get_or_404(db, store.VEHICLES, request.vehicleId, "Vehicle")
    assignments.set_primary_vehicle(db, driver_id, request.vehicleId, request.updatedBy, force=request.force)
    return store.get_document(db, store.DRIVERS, driver_id)


@router.post("/{driver_id}/unassign-vehicle")
def unassign_vehicle(driver_id: str, request: UnassignVehicleRequest, db: Database = Depends(get_db)):
    get_or_404(db, store.DRIVERS, driver_id, "Driver")
    get_or_404(db, store.VEHICLES, request.vehicleId, "Vehicle")
    assignments.unassign_vehicle(db, driver_id, request.vehicleId, request.unassignedBy,
                                 end_odometer=request.endOdometer)
    return {"message": f"Vehicle '{request.vehicleId}' unassigned from driver '{driver_id}'."}


@router.get("/{driver_id}/assignments", summary="Assignment history of a driver, newest first")
def assignment_history(driver_id: str, db: Database = Depends(get_db)):
    get_or_404(db, store.DRIVERS, driver_id, "Driver")
    return store.list_documents(db, store.ASSIGNMENT_HISTORY, {"driverId": driver_id},
                                sort=[("assignedAt", DESCENDING)])


@router.post("/{driver_id}/license-check")
def license_check(driver_id: str, request: LicenseCheckRequest, db: Database = Depends(get_db)):
    driver = get_or_404(db, store.DRIVERS, driver_id, "Driver")
    vehicle = get_or_404(db, store.VEHICLES, request.vehicleId, "Vehicle")

    vehicle_type = store.get_document(db, "vehicle_types", vehicle.get("vehicleTypeId") or "")
    if vehicle_type is None:
        raise HTTPException(status_code=400, detail="Vehicle type of the vehicle is not registered.")

    is_valid, reason = check_license_compliance(
        driver.get("licenseClasses"), vehicle_type.get("name", ""), request.trailerAttached,
    )
    return {"isValid": is_valid, "reason": reason}


@router.post("/{driver_id}/link-user", summary="Link a driver record to a signed-up driver account")
def link_user(driver_id: str, request: DriverLinkRequest, db: Database = Depends(get_db)):
    driver = get_or_404(db, store.DRIVERS, driver_id, "Driver")
    if driver.get("authUid"):
        raise HTTPException(status_code=400, detail="Driver is already linked to an account.")
    user = db[store.USERS].find_one({"uid": request.uid, "role": "driver"})
    if user is None:
        raise HTTPException(status_code=404, detail=f"Driver account '{request.uid}' not found.")
    if db[store.DRIVERS].count_documents({"authUid": request.uid}):
        raise HTTPException(status_code=400, detail="Account is already linked to another driver.")

    store.update_document(db, store.DRIVERS, driver_id, {"authUid": request.uid})
    logger.info(f"Driver {driver_id} linked to account {request.uid}")
    return store.get_document(db, store.DRIVERS, driver_id)
