"""
Ciclo de vida de una reserva: transiciones permitidas, quién puede hacerlas,
reembolso al cancelar y extensiones.

Todo trabaja sobre el documento de Mongo (dict) y devuelve los campos a
escribir con $set; la persistencia la hace BookingService.
"""
from dataclasses import dataclass
from datetime import datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any, Dict, List, Optional
import math
import secrets
import string

from bson import ObjectId

from ..errors import InvalidRangeError, InvalidTransitionError, NotFoundError, UnauthorizedTransitionError
from ..schemas.booking import (
    BookingStatus,
    CancelledBy,
    ExtensionStatus,
    PaymentStatus,
    RefundStatus,
)
from .pricing import round_half_up

S = BookingStatus

ALLOWED: dict[BookingStatus, set[BookingStatus]] = {
    S.pending:     {S.approved, S.rejected, S.cancelled},
    S.approved:    {S.in_progress, S.cancelled},
    S.overdue:     {S.in_progress, S.cancelled},
    S.in_progress: {S.completed, S.cancelled},
    S.rejected:    set(),
    S.cancelled:   set(),
    S.completed:   set(),
}

TERMINAL = frozenset({S.rejected, S.cancelled, S.completed})

STATUS_DISPLAY = {
    S.pending: "Pending Approval",
    S.approved: "Approved",
    S.rejected: "Rejected",
    S.cancelled: "Cancelled",
    S.completed: "Completed",
    S.in_progress: "In Progress",
    S.overdue: "Overdue",
}

CHECK_IN_TIME = time(15, 0)
CHECK_OUT_TIME = time(11, 0)

_BASE36 = string.digits + string.ascii_uppercase


# ---------- Actores ----------

@dataclass(frozen=True)
class Actor:
    id: str
    is_admin: bool = False

    @classmethod
    def from_user(cls, user: Dict[str, Any]) -> "Actor":
        return cls(id=str(user["id"]), is_admin=user.get("role") == "admin")


def is_owner(booking: Dict[str, Any], actor: Actor) -> bool:
    return str(booking.get("owner_id")) == actor.id

def is_renter(booking: Dict[str, Any], actor: Actor) -> bool:
    return str(booking.get("renter_id")) == actor.id

def is_party(booking: Dict[str, Any], actor: Actor) -> bool:
    return is_owner(booking, actor) or is_renter(booking, actor)


# ---------- Identificador y horarios por defecto ----------

def _base36(n: int) -> str:
    out = ""
    while n:
        n, r = divmod(n, 36)
        out = _BASE36[r] + out
    return out or "0"

def generate_booking_ref(now: datetime) -> str:
    """BK-<timestamp ms en base36>-<5 caracteres aleatorios>, en mayúsculas."""
    stamp = _base36(int(now.replace(tzinfo=timezone.utc).timestamp() * 1000))
    rand = "".join(secrets.choice(_BASE36) for _ in range(5))
    return f"BK-{stamp}-{rand}"

def scheduled_check_in(start: datetime) -> datetime:
    return datetime.combine(start.date(), CHECK_IN_TIME)

def scheduled_check_out(end: datetime) -> datetime:
    return datetime.combine(end.date(), CHECK_OUT_TIME)


# ---------- Reembolso ----------

@dataclass(frozen=True)
class RefundEntitlement:
    eligible: bool
    percentage: int
    amount: int

    @property
    def status(self) -> RefundStatus:
        return RefundStatus.pending if self.eligible else RefundStatus.not_applicable


def refund_percentage(hours_until_start: float) -> int:
    if hours_until_start >= 48:
        return 100
    if hours_until_start >= 24:
        return 50
    return 0

def refund_entitlement(
    start: datetime,
    now: datetime,
    payment_status: Any,
    total_amount: int,
) -> RefundEntitlement:
    """Sólo hay reembolso si la reserva está pagada; depende de las horas que faltan."""
    if PaymentStatus(payment_status) != PaymentStatus.paid:
        return RefundEntitlement(False, 0, 0)
    hours = (start - now) / timedelta(hours=1)
    pct = refund_percentage(hours)
    if pct == 0:
        return RefundEntitlement(False, 0, 0)
    amount = round_half_up(Decimal(total_amount) * pct / 100)
    return RefundEntitlement(True, pct, amount)


# ---------- Transiciones ----------

def check_transition(current: BookingStatus, target: BookingStatus) -> None:
    if target not in ALLOWED.get(current, set()):
        raise InvalidTransitionError(f"Transition not allowed: {current.value} → {target.value}")

def authorize_transition(booking: Dict[str, Any], current: BookingStatus, target: BookingStatus, actor: Actor) -> None:
    if target in (S.approved, S.rejected):
        if not is_owner(booking, actor):
            raise UnauthorizedTransitionError("Only the owner can approve or reject a booking")
    elif target == S.cancelled:
        if current == S.in_progress:
            if not actor.is_admin:
                raise UnauthorizedTransitionError("Only an admin can cancel a booking in progress")
        elif not (is_renter(booking, actor) or actor.is_admin):
            raise UnauthorizedTransitionError("Only the renter can cancel this booking")
    elif target in (S.in_progress, S.completed):
        if not (is_party(booking, actor) or actor.is_admin):
            raise UnauthorizedTransitionError("Only the owner or the renter can confirm check-in/check-out")
    else:
        raise UnauthorizedTransitionError(f"Status {target.value} cannot be set directly")

def cancelled_by(booking: Dict[str, Any], actor: Actor) -> CancelledBy:
    if is_renter(booking, actor):
        return CancelledBy.renter
    if is_owner(booking, actor):
        return CancelledBy.owner
    return CancelledBy.admin

def plan_transition(
    booking: Dict[str, Any],
    target: BookingStatus,
    actor: Actor,
    now: datetime,
    reason: Optional[str] = None,
    message: Optional[str] = None,
    notes: Optional[str] = None,
    damage_report: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """
    Valida la transición y devuelve los campos a guardar.
    Si `target` es el estado actual devuelve {} (idempotente).
    """
    current = BookingStatus(booking["status"])
    if target == current:
        if not (is_party(booking, actor) or actor.is_admin):
            raise UnauthorizedTransitionError("Not a party to this booking")
        return {}

    check_transition(current, target)
    authorize_transition(booking, current, target, actor)

    fields: Dict[str, Any] = {"status": target.value, "updated_at": now}
    if target == S.approved:
        fields["approved_at"] = now
        if message:
            fields["owner_response"] = {"message": message, "responded_at": now}
    elif target == S.rejected:
        fields["rejected_at"] = now
        fields["owner_response"] = {"message": reason or message or "", "responded_at": now}
    elif target == S.cancelled:
        refund = refund_entitlement(
            booking["start_date"], now,
            booking.get("payment_status", PaymentStatus.pending.value),
            booking["pricing"]["total_amount"],
        )
        fields["cancellation"] = {
            "cancelled_by": cancelled_by(booking, actor).value,
            "cancelled_at": now,
            "reason": reason or "",
            "refund_amount": refund.amount,
            "refund_percentage": refund.percentage,
            "refund_status": refund.status.value,
            "cancellation_fee": 0,
        }
    elif target == S.in_progress:
        check_in = dict(booking.get("check_in") or {})
        check_in.update({"actual_time": now, "confirmed_by": actor.id, "notes": notes})
        fields["check_in"] = check_in
    elif target == S.completed:
        check_out = dict(booking.get("check_out") or {})
        check_out.update({"actual_time": now, "confirmed_by": actor.id, "notes": notes})
        if damage_report:
            check_out["damage_report"] = damage_report
        fields["check_out"] = check_out
        fields["completed_at"] = now
    return fields


# ---------- Derivados al leer ----------

def is_overdue(booking: Dict[str, Any], now: datetime) -> bool:
    status = BookingStatus(booking["status"])
    if status == S.overdue:
        return True
    checked_out = (booking.get("check_out") or {}).get("actual_time")
    return status == S.approved and booking["end_date"] < now and not checked_out

def derived_fields(booking: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    status = BookingStatus(booking["status"])
    start, end = booking["start_date"], booking["end_date"]
    overdue = is_overdue(booking, now)
    preview = None
    if status not in TERMINAL:
        r = refund_entitlement(start, now, booking.get("payment_status", "pending"), booking["pricing"]["total_amount"])
        preview = {"eligible": r.eligible, "percentage": r.percentage, "amount": r.amount}
    return {
        "duration_in_days": max(0, math.ceil((end - start) / timedelta(days=1))),
        "status_display": STATUS_DISPLAY[S.overdue] if overdue else STATUS_DISPLAY[status],
        "is_overdue": overdue,
        "is_active": status == S.approved and start <= now <= end,
        "is_upcoming": status == S.approved and start > now,
        "refund_preview": preview,
    }


# ---------- Extensiones ----------

EXTENDABLE = frozenset({S.approved, S.in_progress})

def check_extension_request(booking: Dict[str, Any], actor: Actor, new_end: datetime) -> None:
    status = BookingStatus(booking["status"])
    if not is_renter(booking, actor):
        raise UnauthorizedTransitionError("Only the renter can request an extension")
    if status not in EXTENDABLE:
        raise InvalidTransitionError(f"Cannot extend a booking in status {status.value}")
    if new_end <= booking["end_date"]:
        raise InvalidRangeError("New end date must be after the current end date")
    if any(e.get("status") == ExtensionStatus.pending.value for e in booking.get("extensions", [])):
        raise InvalidTransitionError("There is already a pending extension request")


def new_extension(booking: Dict[str, Any], actor: Actor, new_end: datetime, additional_amount: int, now: datetime) -> Dict[str, Any]:
    check_extension_request(booking, actor, new_end)
    return {
        "id": str(ObjectId()),
        "requested_by": actor.id,
        "original_end_date": booking["end_date"],
        "new_end_date": new_end,
        "additional_amount": additional_amount,
        "status": ExtensionStatus.pending.value,
        "requested_at": now,
        "responded_at": None,
    }

def find_pending_extension(booking: Dict[str, Any], extension_id: str, actor: Actor) -> Dict[str, Any]:
    if not is_owner(booking, actor):
        raise UnauthorizedTransitionError("Only the owner can respond to an extension request")
    for ext in booking.get("extensions", []):
        if ext.get("id") == extension_id:
            if ext.get("status") != ExtensionStatus.pending.value:
                raise InvalidTransitionError(f"Extension already {ext.get('status')}")
            return ext
    raise NotFoundError("Extension not found")

def _replace_extension(booking: Dict[str, Any], updated: Dict[str, Any]) -> List[Dict[str, Any]]:
    return [updated if e.get("id") == updated["id"] else e for e in booking.get("extensions", [])]

def plan_extension_approval(booking: Dict[str, Any], ext: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    """Nueva fecha de fin y total += additional_amount; subtotal y comisión no cambian."""
    status = BookingStatus(booking["status"])
    if status not in EXTENDABLE:
        raise InvalidTransitionError(f"Cannot extend a booking in status {status.value}")
    approved = dict(ext, status=ExtensionStatus.approved.value, responded_at=now)
    check_out = dict(booking.get("check_out") or {})
    check_out["scheduled_time"] = scheduled_check_out(ext["new_end_date"])
    return {
        "end_date": ext["new_end_date"],
        "pricing.total_amount": booking["pricing"]["total_amount"] + ext["additional_amount"],
        "extensions": _replace_extension(booking, approved),
        "check_out": check_out,
        "updated_at": now,
    }

def plan_extension_rejection(booking: Dict[str, Any], ext: Dict[str, Any], now: datetime) -> Dict[str, Any]:
    rejected = dict(ext, status=ExtensionStatus.rejected.value, responded_at=now)
    return {"extensions": _replace_extension(booking, rejected), "updated_at": now}
