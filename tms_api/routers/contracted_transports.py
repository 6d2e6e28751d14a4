# tms_api/routers/contracted_transports.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.config import settings
from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import ContractedDriverAdd, ContractedTransport, ExecutionCreate, ExecutionStatusChange
from tms_api.routers.deps import delete_or_404, get_or_404, sheets_http_error, update_or_404
from tms_api.services import sheets_client

logger = logging.getLogger(__name__)
router = APIRouter()


def _execution_for_contract(db: Database, contract_id: str, execution_id: str) -> dict:
    execution = get_or_404(db, store.CONTRACTED_EXECUTIONS, execution_id, "Execution")
    if execution.get("contractId") != contract_id:
        raise HTTPException(status_code=404, detail=f"Execution '{execution_id}' not found.")
    return execution


@router.get("/")
def list_contracted_transports(status: Optional[str] = None, db: Database = Depends(get_db)):
    filter_dict = {"status": status} if status else {}
    return store.list_documents(db, store.CONTRACTED_TRANSPORTS, filter_dict, sort=[("createdAt", DESCENDING)])


@router.post("/", status_code=201)
def create_contracted_transport(contract: ContractedTransport, db: Database = Depends(get_db)):
    data = contract.model_dump()
    data["assignedDrivers"] = []
    contract_id = store.create_document(db, store.CONTRACTED_TRANSPORTS, data)
    logger.info(f"Contracted transport {contract.contractNumber} created")
    return store.get_document(db, store.CONTRACTED_TRANSPORTS, contract_id)


@router.get("/{contract_id}", summary="Contracted transport with its executions")
def get_contracted_transport(contract_id: str, db: Database = Depends(get_db)):
    contract = get_or_404(db, store.CONTRACTED_TRANSPORTS, contract_id, "Contracted transport")
    contract["executions"] = store.list_documents(db, store.CONTRACTED_EXECUTIONS, {"contractId": contract_id},
                                                  sort=[("date", DESCENDING)])
    return contract


@router.put("/{contract_id}")
def update_contracted_transport(contract_id: str, contract: ContractedTransport, db: Database = Depends(get_db)):
    return update_or_404(db, store.CONTRACTED_TRANSPORTS, contract_id, contract, "Contracted transport")


@router.delete("/{contract_id}")
def delete_contracted_transport(contract_id: str, db: Database = Depends(get_db)):
    result = delete_or_404(db, store.CONTRACTED_TRANSPORTS, contract_id, "Contracted transport")
    db[store.CONTRACTED_EXECUTIONS].delete_many({"contractId": contract_id})
    return result


# --- Assigned drivers ---

@router.post("/{contract_id}/drivers")
def add_driver(contract_id: str, request: ContractedDriverAdd, db: Database = Depends(get_db)):
    contract = get_or_404(db, store.CONTRACTED_TRANSPORTS, contract_id, "Contracted transport")
    driver = get_or_404(db, store.DRIVERS, request.driverId, "Driver")
    if any(d.get("driverId") == driver["id"] for d in contract.get("assignedDrivers", [])):
        raise HTTPException(status_code=400, detail="Driver is already assigned to this contract.")

    db[store.CONTRACTED_TRANSPORTS].update_one(
        {"_id": store.to_object_id(contract_id)},
        {"$push": {"assignedDrivers": {
            "driverId": driver["id"],
            "driverName": driver.get("display_name"),
            "driverPhone": driver.get("phone_number"),
        }}, "$set": {"updatedAt": store.utcnow()}},
    )
    return store.get_document(db, store.CONTRACTED_TRANSPORTS, contract_id)


@router.delete("/{contract_id}/drivers/{driver_id}")
def remove_driver(contract_id: str, driver_id: str, db: Database = Depends(get_db)):
    get_or_404(db, store.CONTRACTED_TRANSPORTS, contract_id, "Contracted transport")
    db[store.CONTRACTED_TRANSPORTS].update_one(
        {"_id": store.to_object_id(contract_id)},
        {"$pull": {"assignedDrivers": {"driverId": driver_id}}, "$set": {"updatedAt": store.utcnow()}},
    )
    return store.get_document(db, store.CONTRACTED_TRANSPORTS, contract_id)


# --- Executions ---

@router.post("/{contract_id}/executions", status_code=201)
def create_execution(contract_id: str, execution: ExecutionCreate, db: Database = Depends(get_db)):
    contract = get_or_404(db, store.CONTRACTED_TRANSPORTS, contract_id, "Contracted transport")
    data = execution.model_dump()
    if execution.driverId:
        assigned = next((d for d in contract.get("assignedDrivers", []) if d.get("driverId") == execution.driverId),
                        None)
        if assigned:
            data["driverName"] = assigned.get("driverName")

    now = store.utcnow()
    data.update({
        "contractId": contract_id,
        "date": execution.date or now,
        "status": "Pending",
        "statusHistory": [{"status": "Pending", "date": now}],
    })
    execution_id = store.create_document(db, store.CONTRACTED_EXECUTIONS, data)
    return store.get_document(db, store.CONTRACTED_EXECUTIONS, execution_id)


@router.patch("/{contract_id}/executions/{execution_id}/status")
def update_execution_status(contract_id: str, execution_id: str, change: ExecutionStatusChange,
                            db: Database = Depends(get_db)):
    _execution_for_contract(db, contract_id, execution_id)
    changes = {"status": change.status, "updatedAt": store.utcnow()}
    if change.totalLoadedWeight is not None:
        changes["totalLoadedWeight"] = change.totalLoadedWeight
    if change.totalUnloadedWeight is not None:
        changes["totalUnloadedWeight"] = change.totalUnloadedWeight

    db[store.CONTRACTED_EXECUTIONS].update_one(
        {"_id": store.to_object_id(execution_id)},
        {"$set": changes, "$push": {"statusHistory": {"status": change.status, "date": change.date or store.utcnow()}}},
    )
    return store.get_document(db, store.CONTRACTED_EXECUTIONS, execution_id)


@router.delete("/{contract_id}/executions/{execution_id}")
def delete_execution(contract_id: str, execution_id: str, db: Database = Depends(get_db)):
    _execution_for_contract(db, contract_id, execution_id)
    return delete_or_404(db, store.CONTRACTED_EXECUTIONS, execution_id, "Execution")


@router.post("/{contract_id}/executions/{execution_id}/send-to-sheet")
def send_execution_to_sheet(contract_id: str, execution_id: str, db: Database = Depends(get_db)):
    contract = get_or_404(db, store.CONTRACTED_TRANSPORTS, contract_id, "Contracted transport")
    execution = _execution_for_contract(db, contract_id, execution_id)

    lookups = store.name_lookups(db, ("regions", store.WAREHOUSES))
    related = {
        "startRegionName": sheets_client.lookup_name(lookups, "regions", contract.get("startRegionId"), default=""),
        "startWarehouseName": sheets_client.lookup_name(lookups, store.WAREHOUSES, contract.get("startWarehouseId"), default=""),
        "endRegionName": sheets_client.lookup_name(lookups, "regions", contract.get("endRegionId"), default=""),
        "endWarehouseName": sheets_client.lookup_name(lookups, store.WAREHOUSES, contract.get("endWarehouseId"), default=""),
    }
    row = sheets_client.contracted_execution_row(contract, execution, related, store.utcnow())
    try:
        sheets_client.append_row(settings.CONTRACTED_TRANSPORT_SHEET_ID, settings.CONTRACTED_TRANSPORT_SHEET_NAME, row)
    except sheets_client.SheetsError as e:
        raise sheets_http_error(e)
    return {"success": True, "message": "Execution sent to Google Sheets successfully."}
