# tms_api/routers/reports.py
"""
Dashboard aggregations: company-wide counts and revenue, a transport
manager's own workload, fleet and customer breakdowns, and driver
accounts waiting to be linked to a driver record.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pymongo import DESCENDING
from pymongo.database import Database

from tms_api.core.pricing import fuel_summary
from tms_api.data import store
from tms_api.data.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter()

UNKNOWN = "Тодорхойгүй"
RECENT_LIMIT = 5


def _count_by(db: Database, collection_name: str, field: str,
              match: Optional[Dict[str, Any]] = None) -> Dict[str, int]:
    pipeline = [{"$match": match}] if match else []
    pipeline.append({"$group": {"_id": f"${field}", "count": {"$sum": 1}}})
    counts = {}
    for row in db[collection_name].aggregate(pipeline):
        counts[row["_id"] or "Unknown"] = row["count"]
    return counts


def _count_by_name(counts: Dict[str, int], names: Dict[str, str]) -> Dict[str, int]:
    """Re-keys id counts by display name; ids without a name are grouped as unknown."""
    named: Dict[str, int] = {}
    for doc_id, count in counts.items():
        name = names.get(doc_id) or UNKNOWN
        named[name] = named.get(name, 0) + count
    return named


def _as_utc(value: datetime) -> datetime:
    return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value


def _revenue(db: Database, match: Dict[str, Any]) -> float:
    rows = list(db[store.ORDER_ITEMS].aggregate([
        {"$match": match},
        {"$group": {"_id": None, "total": {"$sum": "$finalPrice"}}},
    ]))
    return rows[0]["total"] if rows else 0


@router.get("/dashboard", summary="Company-wide counts, revenue and recent orders")
def dashboard(db: Database = Depends(get_db)):
    order_counts = _count_by(db, store.ORDERS, "status")
    return {
        "shipments": _count_by(db, store.SHIPMENTS, "status"),
        "vehicles": _count_by(db, store.VEHICLES, "status"),
        "orderItems": _count_by(db, store.ORDER_ITEMS, "status"),
        "drivers": _count_by(db, store.DRIVERS, "status"),
        "orders": order_counts,
        "totals": {
            "customers": db[store.CUSTOMERS].count_documents({}),
            "orders": sum(order_counts.values()),
            "completedOrders": order_counts.get("Completed", 0),
            "pendingOrders": order_counts.get("Pending", 0),
            "revenue": _revenue(db, {"finalPrice": {"$gt": 0}}),
        },
        "recentOrders": store.list_documents(db, store.ORDERS, sort=[("createdAt", DESCENDING)],
                                             limit=RECENT_LIMIT),
    }


@router.get("/my-dashboard", summary="A transport manager's own orders and shipments")
def my_dashboard(transportManagerId: str, db: Database = Depends(get_db)):
    orders = store.list_documents(db, store.ORDERS, {"transportManagerId": transportManagerId},
                                  sort=[("createdAt", DESCENDING)])
    order_ids = [order["id"] for order in orders]
    in_transit = store.list_documents(db, store.SHIPMENTS, {"orderId": {"$in": order_ids}, "status": "In Transit"},
                                      sort=[("createdAt", DESCENDING)])
    shipped_value = _revenue(db, {"orderId": {"$in": order_ids}, "status": {"$in": ["Shipped", "Delivered"]},
                                  "finalPrice": {"$gt": 0}})
    return {
        "stats": {
            "totalShipmentValue": shipped_value,
            "activeOrders": sum(1 for o in orders if o.get("status") in ("Pending", "Processing")),
            "inTransitShipments": len(in_transit),
        },
        "activeShipments": in_transit,
        "pendingOrders": [o for o in orders if o.get("status") == "Pending"],
    }


@router.get("/vehicles", summary="Fleet counts with make, type and trailer breakdowns")
def vehicles_report(db: Database = Depends(get_db)):
    lookups = store.name_lookups(db, ("vehicle_makes", "vehicle_types", "trailer_types"))
    status_counts = _count_by(db, store.VEHICLES, "status")
    return {
        "stats": {
            "total": sum(status_counts.values()),
            "available": status_counts.get("Available", 0),
            "inUse": status_counts.get("In Use", 0),
            "maintenance": status_counts.get("Maintenance", 0),
        },
        "byMake": _count_by_name(_count_by(db, store.VEHICLES, "makeId"), lookups["vehicle_makes"]),
        "byType": _count_by_name(_count_by(db, store.VEHICLES, "vehicleTypeId"), lookups["vehicle_types"]),
        "byTrailer": _count_by_name(_count_by(db, store.VEHICLES, "trailerTypeId"), lookups["trailer_types"]),
        "recentVehicles": store.list_documents(db, store.VEHICLES, sort=[("createdAt", DESCENDING)],
                                               limit=RECENT_LIMIT),
    }


@router.get("/customers", summary="Customer counts, new this month and top industries")
def customers_report(db: Database = Depends(get_db)):
    now = store.utcnow()
    month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    created = [c.get("createdAt") for c in db[store.CUSTOMERS].find({}, {"createdAt": 1})]
    industries = _count_by_name(_count_by(db, store.CUSTOMERS, "industryId"),
                                store.name_lookups(db, ("industries",))["industries"])
    top_industries = sorted(industries.items(), key=lambda kv: kv[1], reverse=True)[:RECENT_LIMIT]
    return {
        "total": len(created),
        "newThisMonth": sum(1 for value in created if value and _as_utc(value) >= month_start),
        "byIndustry": [{"name": name, "count": count} for name, count in top_industries],
    }


@router.get("/driver-reconciliation", summary="Driver accounts not yet linked to a driver record")
def driver_reconciliation(db: Database = Depends(get_db)):
    drivers = store.list_documents(db, store.DRIVERS)
    linked = {d["authUid"] for d in drivers if d.get("authUid")}
    unlinked = []
    for user in store.list_documents(db, store.USERS, {"role": "driver"}):
        if user.get("uid") in linked:
            continue
        user["matchingDrivers"] = [
            d for d in drivers if not d.get("authUid") and d.get("phone_number") == user.get("phone")
        ]
        unlinked.append(user)
    logger.info(f"{len(unlinked)} driver account(s) waiting to be linked")
    return unlinked


@router.get("/fuel")
def fuel_report(db: Database = Depends(get_db)):
    return fuel_summary(store.list_documents(db, store.FUEL_LOGS))
