# tms_api/routers/orders.py
"""
Orders, their items and driver quotes, and the hand-off of an item to a shipment.

An item moves Pending -> Assigned (quote accepted) -> Shipped (shipment
created); reverting a selection puts it and all of its quotes back to Pending.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pymongo import ASCENDING, DESCENDING
from pymongo.database import Database

from tms_api.config import settings
from tms_api.core.numbering import ORDER_COUNTER, SHIPMENT_COUNTER, order_number, shipment_number
from tms_api.core.pricing import price_breakdown
from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import DriverQuoteCreate, EmployeeChange, OrderCreate, OrderItemStatus, OrderItemsCreate
from tms_api.routers.deps import get_or_404
from tms_api.services import maps_client
from tms_api.services.sheets_client import lookup_name

logger = logging.getLogger(__name__)
router = APIRouter()

SHIPMENT_LOOKUPS = ("regions", "vehicle_types", "trailer_types", store.WAREHOUSES)


def _employee_fields(employee: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "employeeId": employee["id"],
        "employeeName": f"{employee.get('lastName', '')} {employee.get('firstName', '')}".strip(),
        "employeeEmail": employee.get("email"),
        "employeePhone": employee.get("phone"),
    }


def items_with_cargoes(db: Database, order_items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Attaches each item's cargo documents under 'cargoItems'."""
    for item in order_items:
        item["cargoItems"] = store.list_documents(db, store.ORDER_ITEM_CARGOES, {"orderItemId": item["id"]})
    return order_items


def _set(db: Database, collection_name: str, doc_id: str, changes: Dict[str, Any]):
    store.update_document(db, collection_name, doc_id, changes)


def _order_item_for_order(db: Database, order_id: str, item_id: str) -> Dict[str, Any]:
    item = get_or_404(db, store.ORDER_ITEMS, item_id, "Order item")
    if item.get("orderId") != order_id:
        raise HTTPException(status_code=404, detail=f"Order item '{item_id}' not found.")
    return item


def _warehouse_point(db: Database, warehouse_id: Optional[str]) -> Optional[str]:
    warehouse = store.get_document(db, store.WAREHOUSES, warehouse_id) if warehouse_id else None
    point = (warehouse or {}).get("geolocation")
    if not point:
        return None
    return f"{point['lat']},{point['lng']}"


def _route_distance(db: Database, item: Dict[str, Any]) -> Optional[float]:
    """Driving distance between the item's warehouses, when both are geocoded."""
    if not maps_client.is_configured():
        return None
    origin = _warehouse_point(db, item.get("startWarehouseId"))
    destination = _warehouse_point(db, item.get("endWarehouseId"))
    if not origin or not destination:
        return None
    return maps_client.route_distance_km(origin, destination)


def _ensure_not_shipped(db: Database, item_id: str):
    # Shipment status mirroring overwrites the item's Shipped status
    if db[store.SHIPMENTS].count_documents({"orderItemId": item_id}):
        raise HTTPException(status_code=400, detail="Order item has already been shipped.")


@router.get("/")
def list_orders(
    status: Optional[str] = None,
    customerId: Optional[str] = None,
    db: Database = Depends(get_db),
):
    filter_dict = {}
    if status:
        filter_dict["status"] = status
    if customerId:
        filter_dict["customerId"] = customerId
    return store.list_documents(db, store.ORDERS, filter_dict, sort=[("createdAt", DESCENDING)])


@router.post("/", status_code=201, summary="Create an order with a generated order number")
def create_order(order: OrderCreate, db: Database = Depends(get_db)):
    customer = get_or_404(db, store.CUSTOMERS, order.customerId, "Customer")
    employee = get_or_404(db, store.CUSTOMER_EMPLOYEES, order.employeeId, "Employee")
    if employee.get("customerId") != order.customerId:
        raise HTTPException(status_code=400, detail="Employee does not belong to the selected customer.")

    now = store.utcnow()
    number = order_number(now, store.next_sequence(db, ORDER_COUNTER))
    data = {
        "orderNumber": number,
        "customerId": order.customerId,
        "customerName": customer.get("name"),
        "transportManagerId": order.transportManagerId,
        "status": "Pending",
        **_employee_fields(employee),
    }
    order_id = store.create_document(db, store.ORDERS, data)
    logger.info(f"Order {number} created for customer {customer.get('name')}")
    return store.get_document(db, store.ORDERS, order_id)


@router.get("/{order_id}", summary="Order with its items, cargoes, quotes and shipments")
def get_order(order_id: str, db: Database = Depends(get_db)):
    order = get_or_404(db, store.ORDERS, order_id, "Order")
    order_items = items_with_cargoes(
        db, store.list_documents(db, store.ORDER_ITEMS, {"orderId": order_id}, sort=[("createdAt", ASCENDING)])
    )
    item_ids = [item["id"] for item in order_items]
    quotes = store.list_documents(db, store.DRIVER_QUOTES, {"orderItemId": {"$in": item_ids}},
                                  sort=[("createdAt", ASCENDING)])
    for item in order_items:
        item["quotes"] = [q for q in quotes if q["orderItemId"] == item["id"]]

    order["items"] = order_items
    order["shipments"] = store.list_documents(db, store.SHIPMENTS, {"orderId": order_id})
    order["totalPrice"] = sum(item.get("finalPrice") or 0 for item in order_items)
    return order


@router.patch("/{order_id}/employee", summary="Change the responsible customer employee")
def change_employee(order_id: str, change: EmployeeChange, db: Database = Depends(get_db)):
    order = get_or_404(db, store.ORDERS, order_id, "Order")
    employee = get_or_404(db, store.CUSTOMER_EMPLOYEES, change.employeeId, "Employee")
    if employee.get("customerId") != order.get("customerId"):
        raise HTTPException(status_code=400, detail="Employee does not belong to the order's customer.")
    _set(db, store.ORDERS, order_id, _employee_fields(employee))
    return store.get_document(db, store.ORDERS, order_id)


# --- Order items ---

@router.post("/{order_id}/items", status_code=201)
def add_order_items(order_id: str, payload: OrderItemsCreate, db: Database = Depends(get_db)):
    get_or_404(db, store.ORDERS, order_id, "Order")
    created = []
    for item in payload.items:
        data = item.model_dump(exclude={"cargoItems"})
        data.update({"orderId": order_id, "status": "Pending", "acceptedQuoteId": None, "finalPrice": None})
        if data.get("totalDistance") is None:
            data["totalDistance"] = _route_distance(db, data)
        item_id = store.create_document(db, store.ORDER_ITEMS, data)
        for cargo in item.cargoItems:
            store.create_document(db, store.ORDER_ITEM_CARGOES, {**cargo.model_dump(), "orderItemId": item_id})
        created.append(item_id)
    logger.info(f"Added {len(created)} item(s) to order {order_id}")
    return items_with_cargoes(db, [store.get_document(db, store.ORDER_ITEMS, item_id) for item_id in created])


@router.delete("/{order_id}/items/{item_id}", summary="Delete an order item with its quotes and cargoes")
def delete_order_item(order_id: str, item_id: str, db: Database = Depends(get_db)):
    _order_item_for_order(db, order_id, item_id)
    quotes = db[store.DRIVER_QUOTES].delete_many({"orderItemId": item_id}).deleted_count
    cargoes = db[store.ORDER_ITEM_CARGOES].delete_many({"orderItemId": item_id}).deleted_count
    store.delete_document(db, store.ORDER_ITEMS, item_id)
    logger.info(f"Deleted order item {item_id} with {quotes} quote(s) and {cargoes} cargo(es)")
    return {"message": f"Order item '{item_id}' successfully deleted.", "deletedQuotes": quotes,
            "deletedCargoes": cargoes}


@router.patch("/{order_id}/items/{item_id}/status")
def set_order_item_status(order_id: str, item_id: str, status: OrderItemStatus, db: Database = Depends(get_db)):
    _order_item_for_order(db, order_id, item_id)
    _set(db, store.ORDER_ITEMS, item_id, {"status": status})
    return store.get_document(db, store.ORDER_ITEMS, item_id)


# --- Driver quotes ---

@router.post("/{order_id}/items/{item_id}/quotes", status_code=201)
def add_quote(order_id: str, item_id: str, quote: DriverQuoteCreate, db: Database = Depends(get_db)):
    _order_item_for_order(db, order_id, item_id)
    data = quote.model_dump()
    data.update({"orderItemId": item_id, "status": "Pending"})
    quote_id = store.create_document(db, store.DRIVER_QUOTES, data)
    return store.get_document(db, store.DRIVER_QUOTES, quote_id)


@router.post("/{order_id}/items/{item_id}/quotes/{quote_id}/accept")
def accept_quote(order_id: str, item_id: str, quote_id: str, db: Database = Depends(get_db)):
    item = _order_item_for_order(db, order_id, item_id)
    quote = get_or_404(db, store.DRIVER_QUOTES, quote_id, "Quote")
    if quote.get("orderItemId") != item_id:
        raise HTTPException(status_code=404, detail=f"Quote '{quote_id}' not found for order item '{item_id}'.")
    _ensure_not_shipped(db, item_id)
    if item.get("acceptedQuoteId"):
        raise HTTPException(status_code=400,
                            detail="Order item already has an accepted quote; revert the selection first.")

    _set(db, store.DRIVER_QUOTES, quote_id, {"status": "Accepted"})
    db[store.DRIVER_QUOTES].update_many(
        {"orderItemId": item_id, "_id": {"$ne": store.to_object_id(quote_id)}, "status": {"$ne": "Rejected"}},
        {"$set": {"status": "Rejected", "updatedAt": store.utcnow()}},
    )

    figures = price_breakdown(quote.get("price", 0), item.get("profitMargin"), item.get("withVAT", False),
                              settings.VAT_RATE)
    _set(db, store.ORDER_ITEMS, item_id, {
        "acceptedQuoteId": quote_id,
        "finalPrice": figures["finalPrice"],
        "status": "Assigned",
    })
    logger.info(f"Quote {quote_id} accepted for order item {item_id} at {figures['finalPrice']}")
    return store.get_document(db, store.ORDER_ITEMS, item_id)


@router.post("/{order_id}/items/{item_id}/revert-quote", summary="Undo the accepted quote of an item")
def revert_quote_selection(order_id: str, item_id: str, db: Database = Depends(get_db)):
    _order_item_for_order(db, order_id, item_id)
    _ensure_not_shipped(db, item_id)

    db[store.DRIVER_QUOTES].update_many(
        {"orderItemId": item_id}, {"$set": {"status": "Pending", "updatedAt": store.utcnow()}}
    )
    _set(db, store.ORDER_ITEMS, item_id, {"acceptedQuoteId": None, "finalPrice": None, "status": "Pending"})
    return store.get_document(db, store.ORDER_ITEMS, item_id)


@router.delete("/{order_id}/items/{item_id}/quotes/{quote_id}")
def delete_quote(order_id: str, item_id: str, quote_id: str, db: Database = Depends(get_db)):
    _order_item_for_order(db, order_id, item_id)
    quote = get_or_404(db, store.DRIVER_QUOTES, quote_id, "Quote")
    if quote.get("orderItemId") != item_id:
        raise HTTPException(status_code=404, detail=f"Quote '{quote_id}' not found for order item '{item_id}'.")
    store.delete_document(db, store.DRIVER_QUOTES, quote_id)
    return {"message": f"Quote '{quote_id}' successfully deleted."}


# --- Shipment hand-off ---

@router.post("/{order_id}/items/{item_id}/shipment", status_code=201,
             summary="Create a shipment from an item with an accepted quote")
def create_shipment(order_id: str, item_id: str, db: Database = Depends(get_db)):
    order = get_or_404(db, store.ORDERS, order_id, "Order")
    item = _order_item_for_order(db, order_id, item_id)
    if not item.get("acceptedQuoteId"):
        raise HTTPException(status_code=400, detail="Order item has no accepted quote.")
    _ensure_not_shipped(db, item_id)

    quote = store.get_document(db, store.DRIVER_QUOTES, item["acceptedQuoteId"])
    if quote is None:
        raise HTTPException(status_code=400, detail="Accepted quote could not be found.")

    lookups = store.name_lookups(db, SHIPMENT_LOOKUPS)
    now = store.utcnow()
    number = shipment_number(now, store.next_sequence(db, SHIPMENT_COUNTER))
    shipment_id = store.create_document(db, store.SHIPMENTS, {
        "shipmentNumber": number,
        "orderId": order_id,
        "orderNumber": order.get("orderNumber"),
        "orderItemId": item_id,
        "customerId": order.get("customerId"),
        "customerName": order.get("customerName"),
        "driverInfo": {
            "name": quote.get("driverName"),
            "phone": quote.get("driverPhone"),
            "quoteId": quote["id"],
        },
        "route": {
            "startRegion": lookup_name(lookups, "regions", item.get("startRegionId")),
            "endRegion": lookup_name(lookups, "regions", item.get("endRegionId")),
            "startWarehouse": lookup_name(lookups, store.WAREHOUSES, item.get("startWarehouseId")),
            "endWarehouse": lookup_name(lookups, store.WAREHOUSES, item.get("endWarehouseId")),
        },
        "vehicleInfo": {
            "vehicleType": lookup_name(lookups, "vehicle_types", item.get("vehicleTypeId")),
            "trailerType": lookup_name(lookups, "trailer_types", item.get("trailerTypeId")),
        },
        "status": "Preparing",
        "estimatedDeliveryDate": item.get("unloadingEndDate"),
        "checklist": {"loading": [], "unloading": []},
    })
    _set(db, store.ORDER_ITEMS, item_id, {"status": "Shipped"})
    logger.info(f"Shipment {number} created from order item {item_id}")
    return store.get_document(db, store.SHIPMENTS, shipment_id)
