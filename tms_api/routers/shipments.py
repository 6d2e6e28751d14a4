# tms_api/routers/shipments.py
import logging
from typing import Literal, Optional

from fastapi import APIRouter, Depends
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.core.status import SHIPMENT_STATUS_LABELS, order_item_status_for, timeline
from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import ChecklistRequest, ShipmentStatus, ShipmentStatusChange
from tms_api.routers.deps import ai_http_error, get_or_404
from tms_api.services import openai_client

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get("/")
def list_shipments(status: Optional[ShipmentStatus] = None, db: Database = Depends(get_db)):
    filter_dict = {"status": status} if status else {}
    return store.list_documents(db, store.SHIPMENTS, filter_dict, sort=[("createdAt", DESCENDING)])


@router.get("/{shipment_id}")
def get_shipment(shipment_id: str, db: Database = Depends(get_db)):
    shipment = get_or_404(db, store.SHIPMENTS, shipment_id, "Shipment")
    shipment["cargoItems"] = store.list_documents(db, store.ORDER_ITEM_CARGOES,
                                                  {"orderItemId": shipment.get("orderItemId")})
    shipment["statusLabel"] = SHIPMENT_STATUS_LABELS.get(shipment.get("status"), shipment.get("status"))
    return shipment


@router.get("/{shipment_id}/timeline")
def get_timeline(shipment_id: str, db: Database = Depends(get_db)):
    shipment = get_or_404(db, store.SHIPMENTS, shipment_id, "Shipment")
    return {"status": shipment.get("status"), "steps": timeline(shipment.get("status"))}


@router.patch("/{shipment_id}/status", summary="Set a shipment status; no transition rules apply")
def set_shipment_status(shipment_id: str, change: ShipmentStatusChange, db: Database = Depends(get_db)):
    shipment = get_or_404(db, store.SHIPMENTS, shipment_id, "Shipment")
    store.update_document(db, store.SHIPMENTS, shipment_id, {"status": change.status})

    item_status = order_item_status_for(change.status)
    if item_status and shipment.get("orderItemId"):
        store.update_document(db, store.ORDER_ITEMS, shipment["orderItemId"], {"status": item_status})
    logger.info(f"Shipment {shipment.get('shipmentNumber')} moved to '{change.status}'")
    return store.get_document(db, store.SHIPMENTS, shipment_id)


@router.post("/{shipment_id}/checklist/{stage}", summary="Generate and store a loading or unloading checklist")
def generate_checklist(
    shipment_id: str,
    stage: Literal["loading", "unloading"],
    request: ChecklistRequest,
    db: Database = Depends(get_db),
):
    get_or_404(db, store.SHIPMENTS, shipment_id, "Shipment")
    generate = (openai_client.generate_loading_checklist if stage == "loading"
                else openai_client.generate_unloading_checklist)
    try:
        result = generate(request.cargoInfo, request.vehicleInfo)
    except openai_client.AIServiceError as e:
        raise ai_http_error(e)

    items = [{"text": text, "checked": False} for text in result.checklistItems]
    store.update_document(db, store.SHIPMENTS, shipment_id, {f"checklist.{stage}": items})
    return store.get_document(db, store.SHIPMENTS, shipment_id)
