"""
Detección de conflictos de fechas para un anuncio.

Dos comprobaciones, en este orden: días bloqueados por el propietario y
solapamiento con reservas que retienen fechas (pending, approved,
in_progress y overdue, que sigue siendo una aprobada sin check-out). Las
funciones son puras; la consulta a Mongo vive en stores.py y usa el mismo
predicado de solapamiento.
"""
from datetime import date, datetime, timedelta
from typing import Any, Dict, Iterable, List, Optional

from ..errors import DateBlockedError, DateConflictError, InvalidRangeError
from ..schemas.booking import BookingStatus
from ..utils import as_date

HOLDING_STATUSES = frozenset({
    BookingStatus.pending,
    BookingStatus.approved,
    BookingStatus.in_progress,
    BookingStatus.overdue,
})
HOLDING_STATUS_VALUES = [s.value for s in HOLDING_STATUSES]


def validate_range(start: datetime, end: datetime) -> None:
    if start >= end:
        raise InvalidRangeError("end_date must be after start_date")


def days_between_inclusive(start: datetime, end: datetime) -> List[date]:
    days = []
    cur = start.date()
    last = end.date()
    while cur <= last:
        days.append(cur)
        cur += timedelta(days=1)
    return days


def overlaps(a_start: datetime, a_end: datetime, b_start: datetime, b_end: datetime) -> bool:
    # Extremos incluidos: terminar el día 10 y empezar el día 10 choca
    return a_start <= b_end and a_end >= b_start


def blocked_days_in_range(blocked: Iterable[Any], start: datetime, end: datetime) -> List[date]:
    blocked_set = {as_date(b) for b in blocked or []}
    return [d for d in days_between_inclusive(start, end) if d in blocked_set]


def is_holding(booking: Dict[str, Any]) -> bool:
    try:
        return BookingStatus(booking.get("status")) in HOLDING_STATUSES
    except ValueError:
        return False


def conflicting_bookings(
    existing: Iterable[Dict[str, Any]],
    start: datetime,
    end: datetime,
    exclude_booking_id: Optional[Any] = None,
) -> List[Dict[str, Any]]:
    exclude = str(exclude_booking_id) if exclude_booking_id is not None else None
    found = []
    for b in existing:
        if exclude is not None and str(b.get("_id")) == exclude:
            continue
        if not is_holding(b):
            continue
        if overlaps(b["start_date"], b["end_date"], start, end):
            found.append(b)
    return found


def describe_conflict(booking: Dict[str, Any]) -> Dict[str, Any]:
    return {
        "booking_ref": booking.get("booking_ref"),
        "start_date": booking["start_date"].isoformat(),
        "end_date": booking["end_date"].isoformat(),
        "status": BookingStatus(booking["status"]).value,
    }


def ensure_bookable(
    listing: Dict[str, Any],
    start: datetime,
    end: datetime,
    existing: Iterable[Dict[str, Any]],
    exclude_booking_id: Optional[Any] = None,
    blocked_from: Optional[datetime] = None,
) -> None:
    """
    Lanza InvalidRangeError, DateBlockedError o DateConflictError si el rango
    no se puede reservar; si no, no devuelve nada.

    `blocked_from` adelanta el inicio del escaneo de días bloqueados (al
    extender, los días ya reservados no se vuelven a mirar).
    """
    validate_range(start, end)

    blocked = (listing.get("availability") or {}).get("blocked_dates", [])
    hits = blocked_days_in_range(blocked, blocked_from or start, end)
    if hits:
        raise DateBlockedError(hits)

    clashes = conflicting_bookings(existing, start, end, exclude_booking_id)
    if clashes:
        raise DateConflictError([describe_conflict(b) for b in clashes])
