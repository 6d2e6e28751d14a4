# tms_api/core/numbering.py
import random
from datetime import datetime

ORDER_COUNTER = "orderCounter"
SHIPMENT_COUNTER = "shipmentCounter"


def order_number(when: datetime, count: int) -> str:
    return f"ORD-{when:%Y%m%d}-{count:04d}"


def shipment_number(when: datetime, count: int) -> str:
    return f"SHP-{when:%Y%m}-{count:04d}"


def quote_number() -> str:
    # Not unique; quotes are documents, not records
    return f"Q{random.randint(1000, 9999)}"
