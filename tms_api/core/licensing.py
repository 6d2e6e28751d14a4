# tms_api/core/licensing.py
from typing import List, Optional, Tuple


def check_license_compliance(
    driver_classes: Optional[List[str]],
    vehicle_type_name: str,
    is_trailer_attached: bool,
) -> Tuple[bool, Optional[str]]:
    """
    Checks a driver's license classes against the vehicle being assigned.

    A trailer needs an E class (BE, CE, ...); heavy vehicles and trucks need C or D.
    """
    if not driver_classes:
        return False, "Жолоочийн үнэмлэхний ангилал бүртгэгдээгүй байна."

    classes = [c.upper() for c in driver_classes]

    if is_trailer_attached and not any("E" in c for c in classes):
        return False, 'Чиргүүлтэй тээврийн хэрэгсэлд "E" ангилал шаардлагатай.'

    type_name = (vehicle_type_name or "").lower()
    if "heavy" in type_name or "truck" in type_name:
        if "C" not in classes and "D" not in classes:
            return False, 'Ачааны автомашинд "C" ангилал шаардлагатай.'

    return True, None
