# tms_api/routers/warehouses.py
import logging
from typing import Optional

from fastapi import APIRouter, Depends
from pymongo import ASCENDING
from pymongo.database import Database

from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import Warehouse
from tms_api.routers.deps import delete_or_404, get_or_404, update_or_404
from tms_api.services import maps_client

logger = logging.getLogger(__name__)
router = APIRouter()


def _with_geolocation(warehouse: Warehouse) -> dict:
    data = warehouse.model_dump()
    if warehouse.geolocation is None and maps_client.is_configured():
        result = maps_client.geocode(warehouse.location)
        if result["status"]:
            data["geolocation"] = {"lat": result["latitude"], "lng": result["longitude"]}
        else:
            logger.warning(f"Warehouse '{warehouse.name}' saved without coordinates: {result['message']}")
    return data


@router.get("/")
def list_warehouses(customerId: Optional[str] = None, db: Database = Depends(get_db)):
    filter_dict = {"customerId": customerId} if customerId else {}
    return store.list_documents(db, store.WAREHOUSES, filter_dict, sort=[("name", ASCENDING)])


@router.post("/", status_code=201)
def create_warehouse(warehouse: Warehouse, db: Database = Depends(get_db)):
    warehouse_id = store.create_document(db, store.WAREHOUSES, _with_geolocation(warehouse))
    return store.get_document(db, store.WAREHOUSES, warehouse_id)


@router.get("/{warehouse_id}")
def get_warehouse(warehouse_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.WAREHOUSES, warehouse_id, "Warehouse")


@router.put("/{warehouse_id}")
def update_warehouse(warehouse_id: str, warehouse: Warehouse, db: Database = Depends(get_db)):
    return update_or_404(db, store.WAREHOUSES, warehouse_id, _with_geolocation(warehouse), "Warehouse")


@router.delete("/{warehouse_id}")
def delete_warehouse(warehouse_id: str, db: Database = Depends(get_db)):
    return delete_or_404(db, store.WAREHOUSES, warehouse_id, "Warehouse")
