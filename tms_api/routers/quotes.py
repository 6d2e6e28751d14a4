# tms_api/routers/quotes.py
import logging
from typing import Any, Dict, List, Tuple

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import Response
from pymongo import ASCENDING
from pymongo.database import Database

from tms_api.config import settings
from tms_api.core.numbering import quote_number
from tms_api.data import store
from tms_api.data.database import get_db
from tms_api.models import QuoteExportRequest
from tms_api.routers.deps import get_or_404, sheets_http_error
from tms_api.routers.orders import items_with_cargoes
from tms_api.services import documents, sheets_client

logger = logging.getLogger(__name__)
router = APIRouter()

QUOTE_LOOKUPS = ("service_types", "regions", "vehicle_types", "trailer_types", store.WAREHOUSES)


def _export_inputs(db: Database, request: QuoteExportRequest) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    order = get_or_404(db, store.ORDERS, request.orderId, "Order")
    filter_dict: Dict[str, Any] = {"orderId": request.orderId}
    if request.itemIds:
        try:
            filter_dict["_id"] = {"$in": [store.to_object_id(i) for i in request.itemIds]}
        except store.InvalidIdError as e:
            raise HTTPException(status_code=400, detail=str(e))
    order_items = store.list_documents(db, store.ORDER_ITEMS, filter_dict, sort=[("createdAt", ASCENDING)])
    if not order_items:
        raise HTTPException(status_code=400, detail="Invalid input data: no order items selected.")
    return order, items_with_cargoes(db, order_items)


@router.post("/excel", summary="Download a priced quote as an Excel workbook")
def export_quote_excel(request: QuoteExportRequest, db: Database = Depends(get_db)):
    order, order_items = _export_inputs(db, request)
    number = quote_number()
    content = documents.build_quote_workbook(order, order_items, store.name_lookups(db, QUOTE_LOOKUPS),
                                             number, store.utcnow(), settings.VAT_RATE)
    logger.info(f"Quote {number} exported to Excel for order {order.get('orderNumber')}")
    return Response(
        content=content,
        media_type=documents.XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="Quote_{order.get("orderNumber")}.xlsx"'},
    )


@router.post("/pdf", summary="Download a priced quote as a PDF")
def export_quote_pdf(request: QuoteExportRequest, db: Database = Depends(get_db)):
    order, order_items = _export_inputs(db, request)
    number = quote_number()
    try:
        content = documents.build_quote_pdf(order, order_items, store.name_lookups(db, QUOTE_LOOKUPS),
                                            number, store.utcnow(), settings.VAT_RATE)
    except documents.DocumentRenderError as e:
        raise HTTPException(status_code=500, detail=f"Failed to generate PDF: {e}")
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": f'attachment; filename="Quote_{order.get("orderNumber")}.pdf"'},
    )


@router.post("/{quote_id}/send-to-sheet", summary="Append an accepted driver quote to the quotes sheet")
def send_quote_to_sheet(quote_id: str, db: Database = Depends(get_db)):
    quote = get_or_404(db, store.DRIVER_QUOTES, quote_id, "Quote")
    order_item = get_or_404(db, store.ORDER_ITEMS, quote.get("orderItemId", ""), "Order item")
    order = get_or_404(db, store.ORDERS, order_item.get("orderId", ""), "Order")
    order_item = items_with_cargoes(db, [order_item])[0]

    row = sheets_client.quote_sheet_row(order, order_item, quote, store.name_lookups(db, QUOTE_LOOKUPS),
                                        store.utcnow(), settings.VAT_RATE)
    try:
        sheets_client.append_row(settings.GOOGLE_SHEET_ID, settings.GOOGLE_SHEET_NAME, row)
    except sheets_client.SheetsError as e:
        raise sheets_http_error(e)
    return {"success": True, "message": "Data sent to Google Sheets successfully."}
