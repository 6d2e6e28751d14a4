# tms_api/services/assignments.py
"""
Driver/vehicle assignment bookkeeping.

An assignment record links one driver to one vehicle. A driver may hold
several Active assignments but at most one is primary; the primary vehicle
is mirrored on the driver (assignedVehicleId) and the vehicle (driverId,
driverName, status In Use). Writes are sequential, not transactional.
"""
import logging
from typing import Any, Dict, Optional

from pymongo.database import Database

from tms_api.data.store import ASSIGNMENT_HISTORY, DRIVERS, VEHICLES, serialize, to_object_id, utcnow

logger = logging.getLogger(__name__)


class AssignmentError(Exception):
    pass


def _set(db: Database, collection_name: str, doc_id: str, changes: Dict[str, Any]):
    changes["updatedAt"] = utcnow()
    db[collection_name].update_one({"_id": to_object_id(doc_id)}, {"$set": changes})


def _active_primary_for_vehicle(vehicle_id: str) -> Dict[str, Any]:
    return {"vehicleId": vehicle_id, "status": "Active", "isPrimary": True}


def assign_vehicle(
    db: Database,
    driver: Dict[str, Any],
    vehicle: Dict[str, Any],
    assigned_by: str,
    start_odometer: Optional[float] = None,
    notes: Optional[str] = None,
    keep_existing: bool = False,
) -> str:
    """
    Makes `vehicle` the driver's primary vehicle and returns the new assignment id.

    Other drivers keep their assignment on the vehicle but lose primary. The
    driver's earlier assignments are ended (vehicles freed to Available), or
    with keep_existing only demoted (vehicles parked as Ready).
    """
    history = db[ASSIGNMENT_HISTORY]
    now = utcnow()

    history.update_many(_active_primary_for_vehicle(vehicle["id"]), {"$set": {"isPrimary": False}})

    for previous in list(history.find({"driverId": driver["id"], "status": "Active"})):
        if keep_existing:
            history.update_one({"_id": previous["_id"]}, {"$set": {"isPrimary": False}})
            _set(db, VEHICLES, previous["vehicleId"], {"status": "Ready"})
        else:
            history.update_one(
                {"_id": previous["_id"]},
                {"$set": {"status": "Ended", "endedAt": now, "endedBy": assigned_by, "isPrimary": False}},
            )
            _set(db, VEHICLES, previous["vehicleId"], {"driverId": None, "driverName": None, "status": "Available"})

    result = history.insert_one({
        "vehicleId": vehicle["id"],
        "vehiclePlate": vehicle.get("licensePlate"),
        "driverId": driver["id"],
        "driverName": driver.get("display_name"),
        "assignedAt": now,
        "assignedBy": assigned_by,
        "startOdometer": start_odometer or vehicle.get("odometer") or 0,
        "status": "Active",
        "isPrimary": True,
        "notes": notes,
    })

    _set(db, DRIVERS, driver["id"], {"assignedVehicleId": vehicle["id"], "status": "Active"})
    _set(db, VEHICLES, vehicle["id"], {
        "driverId": driver["id"],
        "driverName": driver.get("display_name"),
        "status": "In Use",
    })
    logger.info(f"Assigned vehicle {vehicle['id']} to driver {driver['id']} (keep_existing={keep_existing})")
    return str(result.inserted_id)


def get_vehicle_primary_assignment(db: Database, vehicle_id: str) -> Optional[Dict[str, Any]]:
    return serialize(db[ASSIGNMENT_HISTORY].find_one(_active_primary_for_vehicle(vehicle_id)))


def set_primary_vehicle(db: Database, driver_id: str, vehicle_id: str, updated_by: str, force: bool = False):
    """
    Switches which of the driver's active assignments is primary.

    With force, another driver's primary claim on the vehicle is dropped and
    that driver loses their assignedVehicleId.
    """
    history = db[ASSIGNMENT_HISTORY]
    driver = db[DRIVERS].find_one({"_id": to_object_id(driver_id)})
    if driver is None:
        raise AssignmentError("Driver not found")

    if force:
        for conflict in list(history.find(_active_primary_for_vehicle(vehicle_id))):
            if conflict["driverId"] != driver_id:
                history.update_one({"_id": conflict["_id"]}, {"$set": {"isPrimary": False}})
                _set(db, DRIVERS, conflict["driverId"], {"assignedVehicleId": None})

    for assignment in list(history.find({"driverId": driver_id, "status": "Active"})):
        is_target = assignment["vehicleId"] == vehicle_id
        history.update_one({"_id": assignment["_id"]}, {"$set": {"isPrimary": is_target}})
        if is_target:
            _set(db, VEHICLES, assignment["vehicleId"], {
                "status": "In Use",
                "driverId": driver_id,
                "driverName": driver.get("display_name"),
            })
        else:
            _set(db, VEHICLES, assignment["vehicleId"], {"status": "Ready"})

    _set(db, DRIVERS, driver_id, {"assignedVehicleId": vehicle_id})
    logger.info(f"Driver {driver_id} primary vehicle set to {vehicle_id} by {updated_by} (force={force})")


def unassign_vehicle(
    db: Database,
    driver_id: str,
    vehicle_id: str,
    unassigned_by: str,
    end_odometer: Optional[float] = None,
):
    """Ends the driver's active assignments on the vehicle and frees it."""
    history = db[ASSIGNMENT_HISTORY]
    now = utcnow()
    was_primary = False

    for assignment in list(history.find({"driverId": driver_id, "vehicleId": vehicle_id, "status": "Active"})):
        was_primary = was_primary or bool(assignment.get("isPrimary"))
        history.update_one({"_id": assignment["_id"]}, {"$set": {
            "status": "Ended",
            "isPrimary": False,
            "endedAt": now,
            "endedBy": unassigned_by,
            "endOdometer": end_odometer or None,
        }})

    _set(db, VEHICLES, vehicle_id, {"driverId": None, "driverName": None, "status": "Available"})
    if was_primary:
        _set(db, DRIVERS, driver_id, {"assignedVehicleId": None})
    logger.info(f"Vehicle {vehicle_id} unassigned from driver {driver_id} by {unassigned_by}")
