"""
Calculadora de precios de reservas.

Toma la tarifa del anuncio (hourly/daily/weekly/monthly) y un rango de fechas
y devuelve el desglose que se congela en la reserva. Todos los importes son
enteros en la unidad de la moneda del anuncio; sólo se redondea al calcular
la comisión de servicio.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Any, Dict, List, Optional
import math

from ..config import get_settings
from ..errors import InvalidRangeError, NoPricingAvailableError
from ..schemas.booking import DurationUnit, PriceType

# Comisión de plataforma: 5% sobre el subtotal
SERVICE_FEE_RATE = Decimal("0.05")

# Orden de respaldo cuando el tipo pedido no tiene tarifa
FALLBACK_ORDER = (PriceType.daily, PriceType.weekly, PriceType.monthly, PriceType.hourly)

UNIT_FOR = {
    PriceType.hourly: DurationUnit.hours,
    PriceType.daily: DurationUnit.days,
    PriceType.weekly: DurationUnit.weeks,
    PriceType.monthly: DurationUnit.months,
}

ONE_DAY = timedelta(days=1)


def round_half_up(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def billable_days(start: datetime, end: datetime) -> int:
    """Días facturables: ceil(end - start) en días, mínimo 1."""
    days = math.ceil((end - start) / ONE_DAY)
    return max(days, 1)


def convert_duration(days: int, price_type: PriceType) -> int:
    if price_type == PriceType.hourly:
        return days * 24
    if price_type == PriceType.weekly:
        return math.ceil(days / 7)
    if price_type == PriceType.monthly:
        return math.ceil(days / 30)
    return days


def _rate(rate_card: Dict[str, Any], price_type: PriceType) -> int:
    value = rate_card.get(price_type.value) or 0
    return int(value)


def select_price_type(rate_card: Dict[str, Any], requested: Optional[PriceType] = None) -> PriceType:
    if requested is not None and _rate(rate_card, requested) > 0:
        return requested
    for candidate in FALLBACK_ORDER:
        if _rate(rate_card, candidate) > 0:
            return candidate
    raise NoPricingAvailableError()


def service_fee_for(subtotal: int) -> int:
    return round_half_up(Decimal(subtotal) * SERVICE_FEE_RATE)


@dataclass(frozen=True)
class PriceBreakdown:
    price_type: PriceType
    unit_price: int
    duration_value: int
    duration_unit: DurationUnit
    subtotal: int
    service_fee: int
    total_amount: int
    deposit: int = 0
    currency: str = "PKR"
    additional_fees: List[Dict[str, Any]] = field(default_factory=list)

    def duration_doc(self) -> Dict[str, Any]:
        return {"value": self.duration_value, "unit": self.duration_unit.value}

    def pricing_doc(self) -> Dict[str, Any]:
        return {
            "price_type": self.price_type.value,
            "unit_price": self.unit_price,
            "subtotal": self.subtotal,
            "service_fee": self.service_fee,
            "additional_fees": list(self.additional_fees),
            "deposit": self.deposit,
            "total_amount": self.total_amount,
            "currency": self.currency,
        }


def calculate_price(
    listing: Dict[str, Any],
    start: datetime,
    end: datetime,
    price_type: Optional[PriceType] = None,
) -> PriceBreakdown:
    """
    Desglose determinista para `listing` entre `start` y `end`.

    El depósito se copia de la política del anuncio y no suma al total.
    Lanza NoPricingAvailableError si el anuncio no tiene ninguna tarifa > 0.
    """
    rate_card = listing.get("pricing") or {}
    selected = select_price_type(rate_card, price_type)
    unit_price = _rate(rate_card, selected)

    units = convert_duration(billable_days(start, end), selected)
    subtotal = unit_price * units
    fee = service_fee_for(subtotal)

    deposit = ((listing.get("policies") or {}).get("deposit") or {}).get("amount") or 0
    return PriceBreakdown(
        price_type=selected,
        unit_price=unit_price,
        duration_value=units,
        duration_unit=UNIT_FOR[selected],
        subtotal=subtotal,
        service_fee=fee,
        total_amount=subtotal + fee,
        deposit=int(deposit),
        currency=rate_card.get("currency") or get_settings().default_currency,
    )


def quote_extension(pricing: Dict[str, Any], current_end: datetime, new_end: datetime) -> int:
    """
    Importe adicional de extender una reserva hasta `new_end`, con el tipo y
    precio unitario congelados en la reserva (más la comisión del 5%).
    """
    if new_end <= current_end:
        raise InvalidRangeError("New end date must be after the current end date")
    price_type = PriceType(pricing["price_type"])
    units = convert_duration(billable_days(current_end, new_end), price_type)
    subtotal = int(pricing["unit_price"]) * units
    return subtotal + service_fee_for(subtotal)
