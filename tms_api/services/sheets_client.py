# tms_api/services/sheets_client.py
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from urllib.parse import quote
from zoneinfo import ZoneInfo

import requests
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import AuthorizedSession
from google.oauth2 import service_account

from tms_api.config import settings
from tms_api.core.pricing import price_breakdown
from tms_api.core.status import execution_status_label

logger = logging.getLogger(__name__)

SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]
APPEND_URL = "https://sheets.googleapis.com/v4/spreadsheets/{sheet_id}/values/{range}:append"

Lookups = Dict[str, Dict[str, str]]


class SheetsError(Exception):
    pass


class SheetsNotConfiguredError(SheetsError):
    pass


def _session() -> AuthorizedSession:
    if not settings.GOOGLE_SHEETS_CLIENT_EMAIL or not settings.GOOGLE_SHEETS_PRIVATE_KEY:
        raise SheetsNotConfiguredError("Google Sheets environment variables are not configured.")

    credentials = service_account.Credentials.from_service_account_info(
        {
            "type": "service_account",
            "client_email": settings.GOOGLE_SHEETS_CLIENT_EMAIL,
            # Keys stored in env files carry escaped newlines
            "private_key": settings.GOOGLE_SHEETS_PRIVATE_KEY.replace("\\n", "\n"),
            "token_uri": "https://oauth2.googleapis.com/token",
        },
        scopes=SCOPES,
    )
    return AuthorizedSession(credentials)


def append_row(sheet_id: Optional[str], sheet_name: Optional[str], row: List[Any]) -> Dict[str, Any]:
    """Appends one row to the named sheet, letting Sheets parse values as if typed."""
    if not sheet_id or not sheet_name:
        raise SheetsNotConfiguredError("Google Sheet id or name is not configured.")

    session = _session()
    url = APPEND_URL.format(sheet_id=sheet_id, range=quote(sheet_name, safe=""))
    try:
        response = session.post(
            url,
            params={"valueInputOption": "USER_ENTERED"},
            json={"values": [row]},
        )
        response.raise_for_status()
        result = response.json()
    except (requests.exceptions.RequestException, GoogleAuthError, ValueError) as e:
        logger.error(f"Error sending data to Google Sheets ({sheet_name}): {e}", exc_info=True)
        raise SheetsError(str(e)) from e
    finally:
        session.close()

    logger.info(f"Appended row to sheet '{sheet_name}'")
    return result


def local_time(value: datetime) -> datetime:
    """Converts an aware timestamp to SHEETS_TIMEZONE; naive values are taken as already local."""
    if value.tzinfo is None:
        return value
    return value.astimezone(ZoneInfo(settings.SHEETS_TIMEZONE))


def lookup_name(lookups: Lookups, collection: str, doc_id: Optional[str], default: Optional[str] = None) -> str:
    if not doc_id:
        return ""
    name = lookups.get(collection, {}).get(doc_id)
    if name:
        return name
    return doc_id if default is None else default


def cargo_summary(cargo_items: List[Dict[str, Any]]) -> str:
    return ", ".join(
        f"{_number(c.get('quantity'))}{c.get('unit', '')} {c.get('name', '')}".strip()
        for c in cargo_items or []
    )


def _number(value: Any) -> Any:
    if isinstance(value, float) and value.is_integer():
        return int(value)
    return value if value is not None else ""


def quote_sheet_row(
    order: Dict[str, Any],
    order_item: Dict[str, Any],
    quote: Dict[str, Any],
    lookups: Lookups,
    now: datetime,
    vat_rate: float = 0.1,
) -> List[Any]:
    """
    Columns: sent at, order no, customer, start warehouse, end warehouse, cargo,
    vehicle, driver, driver phone, driver price, VAT, profit, final price, notes.
    """
    figures = price_breakdown(quote.get("price", 0), order_item.get("profitMargin"),
                              order_item.get("withVAT", False), vat_rate)
    vehicle_info = (
        f"{lookup_name(lookups, 'vehicle_types', order_item.get('vehicleTypeId'))}, "
        f"{lookup_name(lookups, 'trailer_types', order_item.get('trailerTypeId'))}"
    )
    return [
        local_time(now).strftime("%Y-%m-%d %H:%M:%S"),
        order.get("orderNumber", ""),
        order.get("customerName", ""),
        lookup_name(lookups, "warehouses", order_item.get("startWarehouseId")),
        lookup_name(lookups, "warehouses", order_item.get("endWarehouseId")),
        cargo_summary(order_item.get("cargoItems", [])),
        vehicle_info,
        quote.get("driverName", ""),
        quote.get("driverPhone", ""),
        quote.get("price", 0),
        figures["vatAmount"],
        figures["profitAmount"],
        figures["finalPrice"],
        quote.get("notes") or "",
    ]


def _history_date(execution: Dict[str, Any], status: str) -> Optional[datetime]:
    for entry in execution.get("statusHistory", []):
        if entry.get("status") == status and entry.get("date"):
            return entry["date"]
    return None


def contracted_execution_row(
    contract: Dict[str, Any],
    execution: Dict[str, Any],
    related: Dict[str, str],
    now: datetime,
) -> List[Any]:
    """One row per contracted-transport execution; weights are in tonnes, distance in km."""
    loaded = _history_date(execution, "Loaded")
    delivered = _history_date(execution, "Delivered")
    loaded_weight = execution.get("totalLoadedWeight") or 0
    unloaded_weight = execution.get("totalUnloadedWeight") or 0
    execution_date = execution.get("date")

    return [
        contract.get("contractNumber", ""),
        local_time(now).strftime("%Y-%m-%d %H:%M:%S"),
        local_time(execution_date).strftime("%Y-%m-%d") if execution_date else "N/A",
        contract.get("customerName", ""),
        execution.get("driverName") or "N/A",
        execution.get("vehicleLicense") or "N/A",
        f"{related.get('startRegionName', '')}, {related.get('startWarehouseName', '')}",
        f"{related.get('endRegionName', '')}, {related.get('endWarehouseName', '')}",
        ", ".join(execution.get("selectedCargo", [])),
        local_time(loaded).strftime("%Y-%m-%d %H:%M") if loaded else "-",
        local_time(delivered).strftime("%Y-%m-%d %H:%M") if delivered else "-",
        loaded_weight,
        unloaded_weight,
        loaded_weight - unloaded_weight,
        (contract.get("route") or {}).get("totalDistance", 0),
        execution_status_label(execution.get("status", "")),
    ]
