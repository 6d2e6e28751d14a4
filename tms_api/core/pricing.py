# tms_api/core/pricing.py
import logging
from typing import Any, Dict, Iterable, List, Optional

import pandas as pd

logger = logging.getLogger(__name__)

DEFAULT_VAT_RATE = 0.1


def price_breakdown(
    driver_price: float,
    profit_margin: Optional[float],
    with_vat: bool,
    vat_rate: float = DEFAULT_VAT_RATE,
) -> Dict[str, float]:
    """
    Prices a driver quote for the customer.

    The margin is a percentage on top of the driver's price; VAT, when
    requested, is charged on the price including margin.
    """
    margin = (profit_margin or 0) / 100
    price_with_profit = driver_price * (1 + margin)
    vat_amount = price_with_profit * vat_rate if with_vat else 0.0
    final_price = price_with_profit + vat_amount
    return {
        "priceWithProfit": price_with_profit,
        "vatAmount": vat_amount,
        "finalPrice": final_price,
        "profitAmount": price_with_profit - driver_price,
    }


def quote_line(
    final_price: Optional[float],
    frequency: Optional[int],
    with_vat: bool,
    vat_rate: float = DEFAULT_VAT_RATE,
) -> Dict[str, float]:
    """Splits an order item's final price into the figures printed on a quote."""
    final_price = final_price or 0
    frequency = frequency or 1
    unit_price = final_price / frequency if frequency > 0 else final_price
    price_before_vat = final_price / (1 + vat_rate) if with_vat else final_price
    return {
        "unitPrice": unit_price,
        "frequency": frequency,
        "priceBeforeVat": price_before_vat,
        "vatAmount": final_price - price_before_vat,
        "finalPrice": final_price,
    }


def quote_totals(lines: Iterable[Dict[str, float]]) -> Dict[str, float]:
    totals = {"priceBeforeVat": 0.0, "vatAmount": 0.0, "finalPrice": 0.0}
    for line in lines:
        for key in totals:
            totals[key] += line.get(key, 0)
    return totals


def fuel_efficiency(
    current_odometer: float,
    liters: float,
    previous_full_tank_odometer: Optional[float],
) -> Optional[float]:
    """
    Litres per 100 km between two full-tank fill-ups.

    Only the litres needed to refill now count, over the distance since the
    previous full tank. Returns None without a positive distance.
    """
    if previous_full_tank_odometer is None:
        return None
    distance = current_odometer - previous_full_tank_odometer
    if distance <= 0:
        logger.warning(
            f"Odometer {current_odometer} is not past previous full tank at {previous_full_tank_odometer}; "
            f"efficiency not computed."
        )
        return None
    return liters / distance * 100


def fuel_summary(logs: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Aggregates fuel logs overall and per vehicle."""
    if not logs:
        return {"totalLiters": 0.0, "totalCost": 0.0, "averageEfficiency": None, "byVehicle": []}

    df = pd.DataFrame(logs)
    for col in ("liters", "totalCost", "efficiency"):
        if col not in df.columns:
            df[col] = None
        df[col] = pd.to_numeric(df[col], errors="coerce")

    avg_efficiency = df["efficiency"].mean()
    by_vehicle = (
        df.groupby("vehicleId")
        .agg(totalLiters=("liters", "sum"), totalCost=("totalCost", "sum"),
             averageEfficiency=("efficiency", "mean"), fillUps=("liters", "count"))
        .reset_index()
    )
    return {
        "totalLiters": float(df["liters"].sum()),
        "totalCost": float(df["totalCost"].sum()),
        "averageEfficiency": _float_or_none(avg_efficiency),
        "byVehicle": [
            {
                "vehicleId": row.vehicleId,
                "totalLiters": float(row.totalLiters),
                "totalCost": float(row.totalCost),
                "averageEfficiency": _float_or_none(row.averageEfficiency),
                "fillUps": int(row.fillUps),
            }
            for row in by_vehicle.itertuples(index=False)
        ],
    }


def _float_or_none(value) -> Optional[float]:
    # NaN is not JSON serializable
    return None if pd.isna(value) else float(value)
