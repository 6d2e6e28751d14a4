# tms_api/routers/contracts.py
"""Driver contracts and safety briefings, both signed once with a drawn signature image."""
import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import ContractCreate, SafetyBriefingCreate, SignRequest
from tms_api.routers.deps import get_or_404

logger = logging.getLogger(__name__)
router = APIRouter()

DEFAULT_BRIEFING_ITEMS = [
    "Тээврийн хэрэгслийн техникийн бүрэн бүтэн байдлыг шалгасан.",
    "Ачааг зөв байрлуулж, бэхэлгээг шалгасан.",
    "Хурдны хязгаарлалт болон замын хөдөлгөөний дүрмийг мөрдөнө.",
    "Ядарсан үедээ жолоо барихгүй, тогтмол амарна.",
    "Осол, саатал гарсан тохиолдолд нэн даруй мэдэгдэнэ.",
]


def _sign(db: Database, collection_name: str, doc_id: str, label: str, request: SignRequest,
          extra: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
    doc = get_or_404(db, collection_name, doc_id, label)
    if doc.get("status") == "signed":
        raise HTTPException(status_code=400, detail=f"{label} has already been signed.")

    changes = {"status": "signed", "signedAt": store.utcnow(), "signatureDataUrl": request.signatureDataUrl}
    changes.update(extra or {})
    store.update_document(db, collection_name, doc_id, changes)
    logger.info(f"{label} {doc_id} signed")
    return store.get_document(db, collection_name, doc_id)


# --- Contracts ---

@router.get("/")
def list_contracts(shipmentId: Optional[str] = None, db: Database = Depends(get_db)):
    filter_dict = {"shipmentId": shipmentId} if shipmentId else {}
    return store.list_documents(db, store.CONTRACTS, filter_dict, sort=[("createdAt", DESCENDING)])


@router.post("/", status_code=201, summary="Create a driver contract for a shipment")
def create_contract(contract: ContractCreate, db: Database = Depends(get_db)):
    shipment = get_or_404(db, store.SHIPMENTS, contract.shipmentId, "Shipment")
    price = contract.price
    if price is None:
        quote_id = (shipment.get("driverInfo") or {}).get("quoteId")
        quote = store.get_document(db, store.DRIVER_QUOTES, quote_id) if quote_id else None
        price = quote.get("price") if quote else None

    contract_id = store.create_document(db, store.CONTRACTS, {
        "shipmentId": contract.shipmentId,
        "shipmentNumber": shipment.get("shipmentNumber"),
        "customerName": shipment.get("customerName"),
        "driverName": (shipment.get("driverInfo") or {}).get("name"),
        "driverPhone": (shipment.get("driverInfo") or {}).get("phone"),
        "price": price,
        "terms": contract.terms,
        "status": "pending",
        "signedAt": None,
        "signatureDataUrl": None,
    })
    return store.get_document(db, store.CONTRACTS, contract_id)


@router.get("/safety-briefings")
def list_safety_briefings(shipmentId: Optional[str] = None, db: Database = Depends(get_db)):
    filter_dict = {"shipmentId": shipmentId} if shipmentId else {}
    return store.list_documents(db, store.SAFETY_BRIEFINGS, filter_dict, sort=[("createdAt", DESCENDING)])


@router.post("/safety-briefings", status_code=201)
def create_safety_briefing(briefing: SafetyBriefingCreate, db: Database = Depends(get_db)):
    shipment = get_or_404(db, store.SHIPMENTS, briefing.shipmentId, "Shipment")
    briefing_id = store.create_document(db, store.SAFETY_BRIEFINGS, {
        "shipmentId": briefing.shipmentId,
        "shipmentNumber": shipment.get("shipmentNumber"),
        "driverName": (shipment.get("driverInfo") or {}).get("name"),
        "items": briefing.items or DEFAULT_BRIEFING_ITEMS,
        "status": "pending",
        "signedAt": None,
        "signatureDataUrl": None,
    })
    return store.get_document(db, store.SAFETY_BRIEFINGS, briefing_id)


@router.get("/safety-briefings/{briefing_id}")
def get_safety_briefing(briefing_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.SAFETY_BRIEFINGS, briefing_id, "Safety briefing")


@router.post("/safety-briefings/{briefing_id}/sign")
def sign_safety_briefing(briefing_id: str, request: SignRequest, db: Database = Depends(get_db)):
    return _sign(db, store.SAFETY_BRIEFINGS, briefing_id, "Safety briefing", request,
                 extra={"userAgent": request.userAgent})


@router.get("/{contract_id}")
def get_contract(contract_id: str, db: Database = Depends(get_db)):
    return get_or_404(db, store.CONTRACTS, contract_id, "Contract")


@router.post("/{contract_id}/sign")
def sign_contract(contract_id: str, request: SignRequest, db: Database = Depends(get_db)):
    return _sign(db, store.CONTRACTS, contract_id, "Contract", request)
