# rentspace/routers/bookings.py
from fastapi import APIRouter, Depends, Path, Query, Request, Response, status
from typing import List, Literal, Optional

from ..dependencies import get_booking_service
from ..middleware.rate_limit import apply_rate_limit
from ..schemas.booking import (
    BookingCreate,
    BookingOut,
    BookingStats,
    BookingStatus,
    CheckInPayload,
    CheckOutPayload,
    ExtensionCreate,
    PaymentStatusPatch,
    StatusPatch,
)
from ..security import get_current_user
from ..services.booking_service import BookingService
from ..services.lifecycle import Actor, derived_fields
from ..utils import to_id
import logging

logger = logging.getLogger(__name__)

router = APIRouter()

OBJECT_ID = r"^[0-9a-fA-F]{24}$"

def _to_out(doc: dict, service: BookingService) -> dict:
    d = to_id(doc)
    d.update(derived_fields(doc, service.clock()))
    return d

# ---------- Endpoints ----------

@router.get("", response_model=List[BookingOut])
async def list_my_bookings(
    type: Optional[Literal["renter", "owner"]] = Query(None),
    status_filter: Optional[BookingStatus] = Query(None, alias="status"),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    docs = await service.list_bookings(Actor.from_user(current), type, status_filter)
    return [_to_out(d, service) for d in docs]

@router.get("/stats", response_model=BookingStats)
async def booking_stats(
    role: Literal["renter", "owner"] = Query("renter"),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    return await service.stats(Actor.from_user(current), role)

@router.get("/{booking_id}", response_model=BookingOut)
async def get_booking(
    booking_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    doc = await service.get_booking(booking_id, Actor.from_user(current))
    return _to_out(doc, service)

@router.post("", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def create_booking(
    request: Request,
    payload: BookingCreate,
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    # Rate limiting: máximo 15 reservas por minuto por IP
    apply_rate_limit(request, "15/minute")
    doc = await service.create_booking(
        Actor.from_user(current),
        payload.listing_id,
        payload.start_date,
        payload.end_date,
        message=payload.message,
        price_type=payload.price_type,
    )
    return _to_out(doc, service)

@router.patch("/{booking_id}/status", response_model=BookingOut)
async def patch_status(
    body: StatusPatch,
    booking_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    doc = await service.transition(
        booking_id, body.status, Actor.from_user(current), reason=body.reason, message=body.message
    )
    return _to_out(doc, service)

@router.post("/{booking_id}/check-in", response_model=BookingOut)
async def check_in(
    body: CheckInPayload,
    booking_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    doc = await service.check_in(booking_id, Actor.from_user(current), notes=body.notes)
    return _to_out(doc, service)

@router.post("/{booking_id}/check-out", response_model=BookingOut)
async def check_out(
    body: CheckOutPayload,
    booking_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    damage = body.damage_report.model_dump() if body.damage_report else None
    doc = await service.check_out(booking_id, Actor.from_user(current), notes=body.notes, damage_report=damage)
    return _to_out(doc, service)

@router.post("/{booking_id}/extensions", response_model=BookingOut, status_code=status.HTTP_201_CREATED)
async def request_extension(
    body: ExtensionCreate,
    booking_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    doc = await service.request_extension(booking_id, Actor.from_user(current), body.new_end_date)
    return _to_out(doc, service)

@router.post("/{booking_id}/extensions/{extension_id}/approve", response_model=BookingOut)
async def approve_extension(
    booking_id: str = Path(..., pattern=OBJECT_ID),
    extension_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    doc = await service.approve_extension(booking_id, extension_id, Actor.from_user(current))
    return _to_out(doc, service)

@router.post("/{booking_id}/extensions/{extension_id}/reject", response_model=BookingOut)
async def reject_extension(
    booking_id: str = Path(..., pattern=OBJECT_ID),
    extension_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    doc = await service.reject_extension(booking_id, extension_id, Actor.from_user(current))
    return _to_out(doc, service)

@router.patch("/{booking_id}/payment-status", response_model=BookingOut)
async def patch_payment_status(
    body: PaymentStatusPatch,
    booking_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    """Lo usa el colaborador de pagos (rol admin) para reflejar el cobro."""
    doc = await service.set_payment_status(booking_id, Actor.from_user(current), body.payment_status)
    return _to_out(doc, service)

@router.delete("/{booking_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_booking(
    booking_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
    current=Depends(get_current_user),
):
    await service.delete_booking(booking_id, Actor.from_user(current))
    return Response(status_code=status.HTTP_204_NO_CONTENT)
