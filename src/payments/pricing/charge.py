"""Amount calculator — the charge for a wash given vehicle attributes.

Base service price × vehicle type multiplier × (for motorcycles) subtype
multiplier, rounded half-up to two decimal places.
"""

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

import structlog

logger = structlog.get_logger(__name__)

_CENTS = Decimal("0.01")


@dataclass(frozen=True)
class VehicleType:
    id: str
    name: str
    multiplier: Decimal
    category: str = "car"


@dataclass(frozen=True)
class MotorcycleSubtype:
    id: str
    name: str
    multiplier: Decimal


VEHICLE_TYPES: dict[str, VehicleType] = {
    v.id: v
    for v in (
        VehicleType("sedan", "Sedan", Decimal("1.0")),
        VehicleType("suv", "SUV", Decimal("1.3")),
        VehicleType("van", "Van", Decimal("1.5")),
        VehicleType("pickup", "Pickup", Decimal("1.4")),
        VehicleType("motorcycle", "Motorcycle", Decimal("0.6"), category="motorcycle"),
    )
}

MOTORCYCLE_SUBTYPES: dict[str, MotorcycleSubtype] = {
    s.id: s
    for s in (
        MotorcycleSubtype("small", "Small (up to 150cc)", Decimal("0.8")),
        MotorcycleSubtype("medium", "Medium (151-400cc)", Decimal("1.0")),
        MotorcycleSubtype("big", "Big (above 400cc)", Decimal("1.3")),
    )
}

# Base prices of the wash packages, in PHP.
SERVICE_PRICES: dict[str, Decimal] = {
    "classic": Decimal("200"),
    "regular": Decimal("300"),
    "vip_pro": Decimal("400"),
    "vip_pro_max": Decimal("800"),
    "premium": Decimal("1500"),
    "fac": Decimal("2500"),
}


def _round(amount: Decimal) -> Decimal:
    return amount.quantize(_CENTS, rounding=ROUND_HALF_UP)


def compute_charge(
    base_amount: Decimal | float | int | str,
    vehicle_type_id: str,
    motorcycle_subtype_id: str | None = None,
) -> Decimal:
    """Return the amount to charge.

    Unknown vehicle types charge the base amount unchanged. An unknown
    subtype, or a subtype given for a non-motorcycle, is ignored.
    """
    base = Decimal(str(base_amount))
    if base <= 0:
        raise ValueError(f"Base amount must be positive, got {base_amount}")

    vehicle = VEHICLE_TYPES.get((vehicle_type_id or "").lower())
    if vehicle is None:
        logger.warning("Unknown vehicle type, charging base amount", vehicle_type_id=vehicle_type_id)
        return _round(base)

    amount = base * vehicle.multiplier

    if motorcycle_subtype_id and vehicle.category == "motorcycle":
        subtype = MOTORCYCLE_SUBTYPES.get(motorcycle_subtype_id.lower())
        if subtype is None:
            logger.warning("Unknown motorcycle subtype ignored", motorcycle_subtype_id=motorcycle_subtype_id)
        else:
            amount *= subtype.multiplier

    return _round(amount)


def price_for_service(service_id: str) -> Decimal:
    """Base price of a wash package. Raises KeyError for unknown services."""
    return SERVICE_PRICES[service_id]
