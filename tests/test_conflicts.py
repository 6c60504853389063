"""
Tests para la detección de conflictos de fechas
"""
import pytest
from bson import ObjectId
from datetime import date, datetime

from rentspace.errors import DateBlockedError, DateConflictError, InvalidRangeError
from rentspace.services.conflicts import (
    blocked_days_in_range,
    conflicting_bookings,
    days_between_inclusive,
    ensure_bookable,
    overlaps,
)

LISTING = {"availability": {"blocked_dates": []}}

def booking(start, end, status="approved", ref="BK-1"):
    return {"_id": ObjectId(), "booking_ref": ref, "start_date": start, "end_date": end, "status": status}

def test_days_between_inclusive():
    days = days_between_inclusive(datetime(2024, 1, 1, 18), datetime(2024, 1, 3, 9))
    assert days == [date(2024, 1, 1), date(2024, 1, 2), date(2024, 1, 3)]

def test_overlap_is_inclusive_on_endpoints():
    assert overlaps(datetime(2024, 1, 5), datetime(2024, 1, 10), datetime(2024, 1, 10), datetime(2024, 1, 12))
    assert not overlaps(datetime(2024, 1, 5), datetime(2024, 1, 10), datetime(2024, 1, 11), datetime(2024, 1, 12))

def test_invalid_range():
    with pytest.raises(InvalidRangeError):
        ensure_bookable(LISTING, datetime(2024, 1, 4), datetime(2024, 1, 4), [])
    with pytest.raises(InvalidRangeError):
        ensure_bookable(LISTING, datetime(2024, 1, 5), datetime(2024, 1, 4), [])

def test_blocked_dates_reported():
    listing = {"availability": {"blocked_dates": ["2024-01-02", datetime(2024, 1, 3, 0, 0), "2024-02-01"]}}
    with pytest.raises(DateBlockedError) as exc:
        ensure_bookable(listing, datetime(2024, 1, 1, 12), datetime(2024, 1, 4, 10), [])
    assert exc.value.dates == ["2024-01-02", "2024-01-03"]

def test_blocked_date_on_last_day_ignores_time_of_day():
    hits = blocked_days_in_range(["2024-01-04"], datetime(2024, 1, 1), datetime(2024, 1, 4, 0, 30))
    assert hits == [date(2024, 1, 4)]

def test_overlap_with_approved_booking():
    """Reserva aprobada del 5 al 10; pedir del 8 al 12 choca"""
    existing = [booking(datetime(2024, 1, 5), datetime(2024, 1, 10))]
    with pytest.raises(DateConflictError) as exc:
        ensure_bookable(LISTING, datetime(2024, 1, 8), datetime(2024, 1, 12), existing)
    assert exc.value.conflicts[0]["booking_ref"] == "BK-1"
    assert exc.value.conflicts[0]["status"] == "approved"

@pytest.mark.parametrize("status", ["pending", "approved", "in_progress", "overdue"])
def test_holding_statuses_block(status):
    existing = [booking(datetime(2024, 1, 5), datetime(2024, 1, 10), status=status)]
    assert conflicting_bookings(existing, datetime(2024, 1, 6), datetime(2024, 1, 7))

@pytest.mark.parametrize("status", ["rejected", "cancelled", "completed"])
def test_released_statuses_do_not_block(status):
    existing = [booking(datetime(2024, 1, 5), datetime(2024, 1, 10), status=status)]
    assert conflicting_bookings(existing, datetime(2024, 1, 6), datetime(2024, 1, 7)) == []

def test_excluded_booking_is_ignored():
    b = booking(datetime(2024, 1, 5), datetime(2024, 1, 10))
    assert conflicting_bookings([b], datetime(2024, 1, 6), datetime(2024, 1, 12), exclude_booking_id=b["_id"]) == []
    assert conflicting_bookings([b], datetime(2024, 1, 6), datetime(2024, 1, 12), exclude_booking_id=str(b["_id"])) == []

def test_blocked_dates_checked_before_bookings():
    listing = {"availability": {"blocked_dates": ["2024-01-08"]}}
    existing = [booking(datetime(2024, 1, 5), datetime(2024, 1, 10))]
    with pytest.raises(DateBlockedError):
        ensure_bookable(listing, datetime(2024, 1, 8), datetime(2024, 1, 12), existing)

def test_free_range_passes():
    existing = [booking(datetime(2024, 1, 5), datetime(2024, 1, 10))]
    ensure_bookable(LISTING, datetime(2024, 1, 11), datetime(2024, 1, 14), existing)

def test_accepted_ranges_never_overlap():
    """Aceptando en orden sólo los rangos sin conflicto, ningún par se solapa"""
    requests = [(d, d + n) for d in range(1, 25, 2) for n in (1, 3, 5)]
    accepted = []
    for start_day, end_day in requests:
        start, end = datetime(2024, 3, start_day), datetime(2024, 3, end_day)
        try:
            ensure_bookable(LISTING, start, end, accepted)
        except DateConflictError:
            continue
        accepted.append(booking(start, end, status="pending"))
    for i, a in enumerate(accepted):
        for b in accepted[i + 1:]:
            assert not overlaps(a["start_date"], a["end_date"], b["start_date"], b["end_date"])

def test_blocked_scan_can_start_later():
    """Al extender, el último día ya reservado no se vuelve a mirar"""
    listing = {"availability": {"blocked_dates": ["2024-01-04"]}}
    ensure_bookable(listing, datetime(2024, 1, 4), datetime(2024, 1, 6), [], blocked_from=datetime(2024, 1, 5))
    listing = {"availability": {"blocked_dates": ["2024-01-05"]}}
    with pytest.raises(DateBlockedError):
        ensure_bookable(listing, datetime(2024, 1, 4), datetime(2024, 1, 6), [], blocked_from=datetime(2024, 1, 5))
