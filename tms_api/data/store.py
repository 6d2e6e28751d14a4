# tms_api/data/store.py

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ReturnDocument
from pymongo.database import Database

logger = logging.getLogger(__name__)

# Collection names
CUSTOMERS = "customers"
CUSTOMER_EMPLOYEES = "customer_employees"
DRIVERS = "drivers"
VEHICLES = "vehicles"
ASSIGNMENT_HISTORY = "assignment_history"
WAREHOUSES = "warehouses"
ORDERS = "orders"
ORDER_ITEMS = "order_items"
ORDER_ITEM_CARGOES = "order_item_cargoes"
DRIVER_QUOTES = "driver_quotes"
SHIPMENTS = "shipments"
CONTRACTS = "contracts"
SAFETY_BRIEFINGS = "safety_briefings"
CONTRACTED_TRANSPORTS = "contracted_transports"
CONTRACTED_EXECUTIONS = "contracted_transport_executions"
FUEL_LOGS = "fuel_logs"
MAINTENANCES = "maintenances"
USERS = "users"
AUDIT_LOGS = "audit_logs"
COUNTERS = "counters"


class InvalidIdError(ValueError):
    pass


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(doc_id: str) -> ObjectId:
    try:
        return ObjectId(doc_id)
    except (InvalidId, TypeError):
        raise InvalidIdError(f"'{doc_id}' is not a valid document id")


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Converts a raw Mongo document into a JSON-friendly dict with a string 'id'."""
    if doc is None:
        return None
    data = dict(doc)
    _id = data.pop("_id", None)
    if _id is not None:
        data["id"] = str(_id)
    return data


def _as_dict(payload: Any, exclude_unset: bool = False) -> Dict[str, Any]:
    if isinstance(payload, BaseModel):
        return payload.model_dump(exclude_unset=exclude_unset)
    return dict(payload)


def create_document(db: Database, collection_name: str, data: Any) -> str:
    """Inserts a document stamped with createdAt and returns its id."""
    doc = _as_dict(data)
    doc["createdAt"] = utcnow()
    result = db[collection_name].insert_one(doc)
    logger.debug(f"Inserted {collection_name}/{result.inserted_id}")
    return str(result.inserted_id)


def get_document(db: Database, collection_name: str, doc_id: str) -> Optional[Dict[str, Any]]:
    try:
        oid = to_object_id(doc_id)
    except InvalidIdError:
        return None
    return serialize(db[collection_name].find_one({"_id": oid}))


def list_documents(
    db: Database,
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    sort: Optional[List[Tuple[str, int]]] = None,
    limit: int = 0,
    skip: int = 0,
) -> List[Dict[str, Any]]:
    cursor = db[collection_name].find(filter_dict or {})
    if sort:
        cursor = cursor.sort(sort)
    if skip:
        cursor = cursor.skip(skip)
    if limit:
        cursor = cursor.limit(limit)
    return [serialize(doc) for doc in cursor]


def update_document(db: Database, collection_name: str, doc_id: str, changes: Any) -> bool:
    """
    Applies a partial update ($set) stamped with updatedAt.
    Returns False when no document matched. Last write wins.
    """
    try:
        oid = to_object_id(doc_id)
    except InvalidIdError:
        return False
    update = _as_dict(changes, exclude_unset=True)
    update["updatedAt"] = utcnow()
    result = db[collection_name].update_one({"_id": oid}, {"$set": update})
    return result.matched_count > 0


def delete_document(db: Database, collection_name: str, doc_id: str) -> bool:
    try:
        oid = to_object_id(doc_id)
    except InvalidIdError:
        return False
    result = db[collection_name].delete_one({"_id": oid})
    return result.deleted_count > 0


def next_sequence(db: Database, counter_name: str) -> int:
    """Atomically increments a named counter, starting at 1."""
    counter = db[COUNTERS].find_one_and_update(
        {"_id": counter_name},
        {"$inc": {"current": 1}},
        upsert=True,
        return_document=ReturnDocument.AFTER,
    )
    return counter["current"]


# Reference data; each document carries a 'name' (vehicle_models also a makeId)
REFERENCE_COLLECTIONS = (
    "industries",
    "service_types",
    "regions",
    "vehicle_types",
    "trailer_types",
    "packaging_types",
    "vehicle_makes",
    "vehicle_models",
)


def name_lookups(db: Database, collection_names) -> Dict[str, Dict[str, str]]:
    """Maps id -> name for each collection, for rendering denormalized labels."""
    lookups = {}
    for name in collection_names:
        lookups[name] = {
            str(doc["_id"]): doc.get("name", "")
            for doc in db[name].find({}, {"name": 1})
        }
    return lookups
