from pydantic import BaseModel, Field
from datetime import date, datetime
from typing import Optional, List

from .booking import Currency, Duration, PriceType

class RateCard(BaseModel):
    hourly: Optional[int] = Field(None, ge=0)
    daily: Optional[int] = Field(None, ge=0)
    weekly: Optional[int] = Field(None, ge=0)
    monthly: Optional[int] = Field(None, ge=0)
    currency: Currency = "PKR"

class Availability(BaseModel):
    blocked_dates: List[date] = Field(default_factory=list)

class DepositPolicy(BaseModel):
    amount: int = Field(0, ge=0)
    required: bool = False

class Policies(BaseModel):
    deposit: DepositPolicy = DepositPolicy()

class ListingCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    pricing: RateCard
    availability: Availability = Availability()
    policies: Policies = Policies()

class ListingOut(ListingCreate):
    id: str
    owner_id: str
    created_at: Optional[datetime] = None

class BlockedDatesPut(BaseModel):
    blocked_dates: List[date]

class QuoteOut(BaseModel):
    """Respuesta de /listings/{id}/quote: disponibilidad + desglose de precio."""
    available: bool
    blocked_dates: List[str] = []
    conflicts: int = 0
    price_type: Optional[PriceType] = None
    duration: Optional[Duration] = None
    unit_price: Optional[int] = None
    subtotal: Optional[int] = None
    service_fee: Optional[int] = None
    total_amount: Optional[int] = None
    deposit: Optional[int] = None
    currency: Optional[Currency] = None
