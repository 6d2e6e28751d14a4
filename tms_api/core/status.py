# tms_api/core/status.py
from typing import Dict, List, Optional

SHIPMENT_TIMELINE = [
    "Preparing",
    "Ready For Loading",
    "Loading",
    "In Transit",
    "Unloading",
    "Delivered",
]

SHIPMENT_STATUS_LABELS = {
    "Preparing": "Бэлтгэж буй",
    "Ready For Loading": "Ачихад бэлэн",
    "Loading": "Ачиж буй",
    "In Transit": "Тээвэрлэж буй",
    "Unloading": "Буулгаж буй",
    "Delivered": "Хүргэгдсэн",
    "Cancelled": "Цуцлагдсан",
}

# Shipment statuses that are mirrored onto the originating order item
_ORDER_ITEM_STATUS = {
    "In Transit": "In Transit",
    "Delivered": "Delivered",
    "Cancelled": "Cancelled",
}

EXECUTION_STATUS_LABELS = {
    "Pending": "Хүлээгдэж буй",
    "Loaded": "Ачсан",
    "Unloaded": "Буулгасан",
    "Delivered": "Хүргэгдсэн",
}


def timeline(current_status: str) -> List[Dict[str, object]]:
    """
    Builds the shipment progress steps for display.

    A status outside the timeline (e.g. Cancelled) leaves every step unreached.
    """
    current_index = SHIPMENT_TIMELINE.index(current_status) if current_status in SHIPMENT_TIMELINE else -1
    steps = []
    for index, status in enumerate(SHIPMENT_TIMELINE):
        steps.append({
            "step": index + 1,
            "status": status,
            "label": SHIPMENT_STATUS_LABELS[status],
            "completed": index < current_index,
            "current": index == current_index,
            "reached": index <= current_index,
        })
    return steps


def order_item_status_for(shipment_status: str) -> Optional[str]:
    return _ORDER_ITEM_STATUS.get(shipment_status)


def execution_status_label(status: str) -> str:
    return EXECUTION_STATUS_LABELS.get(status, status)
