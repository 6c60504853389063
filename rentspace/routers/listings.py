from fastapi import APIRouter, Depends, HTTPException, Path, Query, status
from datetime import datetime
from typing import Optional

from ..dependencies import get_booking_service, get_listing_store
from ..schemas.booking import PriceType
from ..schemas.listing import BlockedDatesPut, ListingCreate, ListingOut, QuoteOut
from ..security import get_current_user
from ..services.booking_service import BookingService
from ..services.stores import MongoListingStore
from ..utils import to_id, utcnow

router = APIRouter()

OBJECT_ID = r"^[0-9a-fA-F]{24}$"

def to_out(doc: dict) -> dict:
    d = to_id(doc)
    d.setdefault("availability", {"blocked_dates": []})
    return d

@router.post("", response_model=ListingOut, status_code=status.HTTP_201_CREATED)
async def create_listing(
    payload: ListingCreate,
    current=Depends(get_current_user),
    store: MongoListingStore = Depends(get_listing_store),
):
    doc = payload.model_dump(mode="json")  # fechas bloqueadas como "YYYY-MM-DD"
    doc["owner_id"] = current["id"]     # lo pone el backend
    doc["created_at"] = utcnow()
    created = await store.insert(doc)
    return to_out(created)

@router.get("/{listing_id}", response_model=ListingOut)
async def get_listing(
    listing_id: str = Path(..., pattern=OBJECT_ID),
    store: MongoListingStore = Depends(get_listing_store),
):
    doc = await store.find_by_id(listing_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Listing not found")
    return to_out(doc)

@router.put("/{listing_id}/blocked-dates", response_model=ListingOut)
async def put_blocked_dates(
    body: BlockedDatesPut,
    listing_id: str = Path(..., pattern=OBJECT_ID),
    current=Depends(get_current_user),
    store: MongoListingStore = Depends(get_listing_store),
):
    doc = await store.find_by_id(listing_id)
    if not doc:
        raise HTTPException(status_code=404, detail="Listing not found")
    if str(doc.get("owner_id")) != current["id"]:
        raise HTTPException(status_code=403, detail="Only the owner can block dates")
    days = sorted({d.isoformat() for d in body.blocked_dates})
    updated = await store.set_blocked_dates(listing_id, days)
    return to_out(updated)

@router.get("/{listing_id}/quote", response_model=QuoteOut)
async def quote(
    start_date: datetime,
    end_date: datetime,
    price_type: Optional[PriceType] = Query(None),
    listing_id: str = Path(..., pattern=OBJECT_ID),
    service: BookingService = Depends(get_booking_service),
):
    return await service.quote(listing_id, start_date, end_date, price_type)
