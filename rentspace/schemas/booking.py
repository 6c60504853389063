from pydantic import BaseModel, Field
from enum import Enum
from datetime import datetime
from typing import Optional, List, Literal

class BookingStatus(str, Enum):
    pending     = "pending"
    approved    = "approved"
    rejected    = "rejected"
    cancelled   = "cancelled"
    completed   = "completed"
    in_progress = "in_progress"
    overdue     = "overdue"

class PaymentStatus(str, Enum):
    pending  = "pending"
    partial  = "partial"
    paid     = "paid"
    refunded = "refunded"
    failed   = "failed"

class PriceType(str, Enum):
    hourly  = "hourly"
    daily   = "daily"
    weekly  = "weekly"
    monthly = "monthly"

class DurationUnit(str, Enum):
    hours  = "hours"
    days   = "days"
    weeks  = "weeks"
    months = "months"

class RefundStatus(str, Enum):
    pending        = "pending"
    processed      = "processed"
    failed         = "failed"
    not_applicable = "not_applicable"

class CancelledBy(str, Enum):
    renter = "renter"
    owner  = "owner"
    admin  = "admin"

class ExtensionStatus(str, Enum):
    pending  = "pending"
    approved = "approved"
    rejected = "rejected"

Currency = Literal["PKR", "USD"]

# ---------- Entrada ----------

class BookingCreate(BaseModel):
    listing_id: str = Field(..., pattern=r"^[0-9a-fA-F]{24}$")
    start_date: datetime
    end_date: datetime
    price_type: Optional[PriceType] = None
    message: Optional[str] = Field(None, max_length=1000)

class StatusPatch(BaseModel):
    status: BookingStatus
    reason: Optional[str] = Field(None, max_length=1000)
    message: Optional[str] = Field(None, max_length=1000)

class CheckInPayload(BaseModel):
    notes: Optional[str] = None

class DamageReport(BaseModel):
    has_damage: bool = False
    description: Optional[str] = None
    estimated_cost: Optional[int] = Field(None, ge=0)

class CheckOutPayload(BaseModel):
    notes: Optional[str] = None
    damage_report: Optional[DamageReport] = None

class ExtensionCreate(BaseModel):
    new_end_date: datetime

class PaymentStatusPatch(BaseModel):
    payment_status: PaymentStatus

# ---------- Salida ----------

class AdditionalFee(BaseModel):
    name: str
    amount: int
    description: Optional[str] = None

class Duration(BaseModel):
    value: int
    unit: DurationUnit

class Pricing(BaseModel):
    price_type: PriceType
    unit_price: int = Field(..., ge=0)
    subtotal: int = Field(..., ge=0)
    service_fee: int = Field(0, ge=0)
    additional_fees: List[AdditionalFee] = []
    deposit: int = Field(0, ge=0)
    total_amount: int = Field(..., ge=0)
    currency: Currency = "PKR"

class OwnerResponse(BaseModel):
    message: Optional[str] = None
    responded_at: Optional[datetime] = None

class Cancellation(BaseModel):
    cancelled_by: CancelledBy
    cancelled_at: datetime
    reason: Optional[str] = None
    refund_amount: int = 0
    refund_percentage: int = 0
    refund_status: RefundStatus = RefundStatus.not_applicable
    cancellation_fee: int = 0

class Extension(BaseModel):
    id: str
    requested_by: str
    original_end_date: datetime
    new_end_date: datetime
    additional_amount: int
    status: ExtensionStatus = ExtensionStatus.pending
    requested_at: datetime
    responded_at: Optional[datetime] = None

class CheckIn(BaseModel):
    scheduled_time: Optional[datetime] = None
    actual_time: Optional[datetime] = None
    confirmed_by: Optional[str] = None
    notes: Optional[str] = None

class CheckOut(CheckIn):
    damage_report: Optional[DamageReport] = None

class RefundPreview(BaseModel):
    eligible: bool
    percentage: int
    amount: int

class BookingOut(BaseModel):
    id: str
    booking_ref: str
    listing_id: str
    renter_id: str
    owner_id: str
    start_date: datetime
    end_date: datetime
    duration: Duration
    pricing: Pricing
    status: BookingStatus
    payment_status: PaymentStatus
    message: Optional[str] = None
    owner_response: Optional[OwnerResponse] = None
    cancellation: Optional[Cancellation] = None
    extensions: List[Extension] = []
    check_in: CheckIn = CheckIn()
    check_out: CheckOut = CheckOut()
    requested_at: Optional[datetime] = None
    approved_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    # Calculados al leer
    duration_in_days: int
    status_display: str
    is_overdue: bool = False
    is_active: bool = False
    is_upcoming: bool = False
    refund_preview: Optional[RefundPreview] = None

class BookingStats(BaseModel):
    total_bookings: int = 0
    completed_bookings: int = 0
    cancelled_bookings: int = 0
    total_spent: int = 0
